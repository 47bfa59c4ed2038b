from datetime import datetime, timedelta
from uuid import UUID, uuid4

from pydantic import TypeAdapter
from sqlalchemy import func, select

from esahayak.models.buyer import BuyerHistory

parse_ts = TypeAdapter(datetime).validate_python


def history_count(session_factory, buyer_id):
    db = session_factory()
    try:
        return db.execute(
            select(func.count()).select_from(BuyerHistory).where(BuyerHistory.buyer_id == UUID(str(buyer_id)))
        ).scalar_one()
    finally:
        db.close()


# ---------- auth ----------

def test_requires_session(client, buyer_payload):
    assert client.get("/api/buyers").status_code == 401
    r = client.post("/api/buyers", json=buyer_payload())
    assert r.status_code == 401
    assert r.json()["error"] == "Unauthorized"


def test_expired_session_is_no_session(make_client):
    stale = make_client("stale@example.com", expires_in=timedelta(minutes=-5))
    assert stale.get("/api/buyers").status_code == 401
    assert stale.get(f"/api/buyers/{uuid4()}").status_code == 401


def test_unknown_session_token(client):
    client.cookies.set("session-token", "not-a-real-token")
    assert client.get("/api/buyers").status_code == 401


# ---------- create ----------

def test_create_returns_201_and_one_created_history(owner, buyer_payload, session_factory):
    r = owner.post("/api/buyers", json=buyer_payload(email="", notes=""))
    assert r.status_code == 201, r.text
    buyer = r.json()
    assert buyer["fullName"] == "Rohit Sharma"
    assert buyer["status"] == "New"
    assert buyer["email"] is None
    assert buyer["notes"] is None
    assert buyer["ownerId"] == str(owner.user_id)
    assert buyer["tags"] == ["hot"]

    detail = owner.get(f"/api/buyers/{buyer['id']}").json()
    assert len(detail["history"]) == 1
    assert detail["history"][0]["diff"] == {"created": {"old": None, "new": "Lead created"}}
    assert detail["history"][0]["changedBy"] == str(owner.user_id)


def test_create_validation_errors_are_field_lists(owner, buyer_payload):
    r = owner.post("/api/buyers", json=buyer_payload(propertyType="Apartment", phone="12345"))
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    fields = {d["field"]: d for d in body["details"]}
    assert "phone" in fields
    assert fields["bhk"]["code"] == "missing_field"


def test_create_plot_without_bhk(owner, buyer_payload):
    r = owner.post("/api/buyers", json=buyer_payload(propertyType="Plot"))
    assert r.status_code == 201
    assert r.json()["bhk"] is None


def test_create_budget_range(owner, buyer_payload):
    bad = owner.post("/api/buyers", json=buyer_payload(budgetMin=7000000, budgetMax=5000000))
    assert bad.status_code == 400
    assert {d["field"]: d["code"] for d in bad.json()["details"]} == {"budgetMax": "invalid_range"}

    ok = owner.post("/api/buyers", json=buyer_payload(budgetMin=5000000, budgetMax=7000000))
    assert ok.status_code == 201


# ---------- list ----------

def test_list_filters_sort_and_paginate(owner, seed_buyer):
    seed_buyer(owner.user_id, fullName="Charu Mehta", phone="9000000003", city="Mohali")
    seed_buyer(owner.user_id, fullName="Aman Verma", phone="9000000001", city="Chandigarh")
    seed_buyer(owner.user_id, fullName="Bela Singh", phone="9000000002", city="Chandigarh",
               propertyType="Apartment", bhk="3", email="bela@corp.in")

    r = owner.get("/api/buyers", params={"sortBy": "fullName", "sortOrder": "asc", "limit": 2})
    assert r.status_code == 200
    body = r.json()
    assert [b["fullName"] for b in body["buyers"]] == ["Aman Verma", "Bela Singh"]
    assert body["pagination"] == {
        "page": 1, "limit": 2, "totalCount": 3, "totalPages": 2,
        "hasNextPage": True, "hasPrevPage": False,
    }

    page2 = owner.get("/api/buyers", params={"sortBy": "fullName", "sortOrder": "asc", "limit": 2, "page": 2}).json()
    assert [b["fullName"] for b in page2["buyers"]] == ["Charu Mehta"]
    assert page2["pagination"]["hasNextPage"] is False
    assert page2["pagination"]["hasPrevPage"] is True

    city = owner.get("/api/buyers", params={"city": "Chandigarh"}).json()
    assert {b["fullName"] for b in city["buyers"]} == {"Aman Verma", "Bela Singh"}

    search = owner.get("/api/buyers", params={"search": "CORP.IN"}).json()
    assert [b["fullName"] for b in search["buyers"]] == ["Bela Singh"]

    phone = owner.get("/api/buyers", params={"search": "0003"}).json()
    assert [b["fullName"] for b in phone["buyers"]] == ["Charu Mehta"]

    ptype = owner.get("/api/buyers", params={"propertyType": "Apartment", "status": "New"}).json()
    assert [b["fullName"] for b in ptype["buyers"]] == ["Bela Singh"]


def test_list_empty_is_200(owner):
    r = owner.get("/api/buyers", params={"city": "Zirakpur"})
    assert r.status_code == 200
    assert r.json()["buyers"] == []
    assert r.json()["pagination"]["totalCount"] == 0


def test_list_bad_query_is_400(owner):
    r = owner.get("/api/buyers", params={"limit": 500})
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "limit"


def test_list_huge_page_is_400(owner):
    r = owner.get("/api/buyers", params={"page": 10**19})
    assert r.status_code == 400
    body = r.json()
    assert set(body) == {"error", "details"}
    assert body["error"] == "Validation failed"
    assert [d["field"] for d in body["details"]] == ["page"]

    assert owner.get("/api/buyers", params={"page": 10_000}).status_code == 200


# ---------- get ----------

def test_get_missing_is_404(owner):
    r = owner.get(f"/api/buyers/{uuid4()}")
    assert r.status_code == 404
    assert r.json()["error"] == "Buyer not found"


def test_detail_history_is_capped_at_five_newest_first(owner, seed_buyer, buyer_payload):
    buyer_id = seed_buyer(owner.user_id)
    for status in ("Qualified", "Contacted", "Visited", "Negotiation", "Converted", "Dropped"):
        r = owner.put(f"/api/buyers/{buyer_id}", json=buyer_payload(status=status))
        assert r.status_code == 200
    history = owner.get(f"/api/buyers/{buyer_id}").json()["history"]
    assert len(history) == 5
    assert history[0]["diff"]["status"]["new"] == "Dropped"
    stamps = [parse_ts(h["changedAt"]) for h in history]
    assert stamps == sorted(stamps, reverse=True)


# ---------- ownership ----------

def test_only_owner_may_update_or_delete(owner, make_client, seed_buyer, buyer_payload):
    buyer_id = seed_buyer(owner.user_id)
    intruder = make_client("other@example.com")

    assert intruder.get(f"/api/buyers/{buyer_id}").status_code == 200

    r = intruder.put(f"/api/buyers/{buyer_id}", json=buyer_payload(fullName="Hijacked"))
    assert r.status_code == 403
    assert r.json()["error"] == "You can only edit your own leads"

    r = intruder.delete(f"/api/buyers/{buyer_id}")
    assert r.status_code == 403

    assert owner.get(f"/api/buyers/{buyer_id}").json()["buyer"]["fullName"] == "Rohit Sharma"


def test_update_and_delete_missing_are_404(owner, buyer_payload):
    assert owner.put(f"/api/buyers/{uuid4()}", json=buyer_payload()).status_code == 404
    assert owner.delete(f"/api/buyers/{uuid4()}").status_code == 404


# ---------- update / history ----------

def test_status_change_records_single_field_diff(owner, buyer_payload):
    created = owner.post("/api/buyers", json=buyer_payload()).json()

    r = owner.put(f"/api/buyers/{created['id']}", json=buyer_payload(status="Qualified"))
    assert r.status_code == 200
    assert r.json()["status"] == "Qualified"
    assert parse_ts(r.json()["updatedAt"]) > parse_ts(created["updatedAt"])

    history = owner.get(f"/api/buyers/{created['id']}").json()["history"]
    assert len(history) == 2
    assert history[0]["diff"] == {"status": {"old": "New", "new": "Qualified"}}


def test_no_op_update_writes_no_history(owner, buyer_payload, session_factory):
    created = owner.post("/api/buyers", json=buyer_payload()).json()
    r = owner.put(f"/api/buyers/{created['id']}", json=buyer_payload())
    assert r.status_code == 200
    assert history_count(session_factory, created["id"]) == 1


def test_tag_and_budget_diff(owner, buyer_payload):
    created = owner.post("/api/buyers", json=buyer_payload()).json()
    owner.put(
        f"/api/buyers/{created['id']}",
        json=buyer_payload(tags=["hot", "nri"], budgetMax=8000000, propertyType="Villa", bhk="4"),
    )
    diff = owner.get(f"/api/buyers/{created['id']}").json()["history"][0]["diff"]
    assert diff == {
        "tags": {"old": ["hot"], "new": ["hot", "nri"]},
        "budgetMax": {"old": 7000000, "new": 8000000},
        "propertyType": {"old": "Plot", "new": "Villa"},
        "bhk": {"old": None, "new": "4"},
    }


def test_optimistic_concurrency(owner, make_client, buyer_payload):
    created = owner.post("/api/buyers", json=buyer_payload()).json()
    t0 = created["updatedAt"]

    # another tab of the same owner saves first
    second_tab = make_client("owner@example.com")
    first = second_tab.put(f"/api/buyers/{created['id']}", json=buyer_payload(status="Contacted", updatedAt=t0))
    assert first.status_code == 200
    t1 = first.json()["updatedAt"]
    assert parse_ts(t1) != parse_ts(t0)

    stale = owner.put(f"/api/buyers/{created['id']}", json=buyer_payload(status="Visited", updatedAt=t0))
    assert stale.status_code == 409
    assert parse_ts(stale.json()["currentUpdatedAt"]) == parse_ts(t1)
    assert "refresh" in stale.json()["error"]

    fresh = owner.put(f"/api/buyers/{created['id']}", json=buyer_payload(status="Visited", updatedAt=t1))
    assert fresh.status_code == 200

    blind = owner.put(f"/api/buyers/{created['id']}", json=buyer_payload(status="Negotiation"))
    assert blind.status_code == 200
    assert blind.json()["status"] == "Negotiation"


# ---------- delete ----------

def test_delete_cascades_history(owner, buyer_payload, session_factory):
    created = owner.post("/api/buyers", json=buyer_payload()).json()
    owner.put(f"/api/buyers/{created['id']}", json=buyer_payload(status="Qualified"))
    assert history_count(session_factory, created["id"]) == 2

    r = owner.delete(f"/api/buyers/{created['id']}")
    assert r.status_code == 200
    assert r.json() == {"message": "Buyer deleted successfully"}
    assert owner.get(f"/api/buyers/{created['id']}").status_code == 404
    assert history_count(session_factory, created["id"]) == 0


def test_mutation_rate_limit(owner, buyer_payload):
    codes = [owner.post("/api/buyers", json=buyer_payload()).status_code for _ in range(11)]
    assert codes[:10] == [201] * 10
    assert codes[10] == 429
