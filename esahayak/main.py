# esahayak/main.py
import logging
from urllib.parse import urlencode

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool

from esahayak.api.deps import session_factory
from esahayak.api.deps_auth import resolve_session, session_token_from
from esahayak.api.routes.auth import router as auth_router
from esahayak.api.routes.buyers import router as buyers_router
from esahayak.core.config import settings
from esahayak.core.errors import register_exception_handlers

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# paths reachable without a session; API routes answer 401 themselves
PUBLIC_PREFIXES = ("/auth", "/api", "/_next", "/static", "/favicon", "/health", "/docs", "/openapi.json")
SIGNIN_PATH = "/auth/signin"


def is_public(path: str) -> bool:
    return path == "/" or path.startswith(PUBLIC_PREFIXES)


app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


def _lookup(request: Request):
    db = session_factory(request)()
    try:
        return resolve_session(db, session_token_from(request))
    finally:
        db.close()


# Page routes need a live session; everything else redirects to sign-in
@app.middleware("http")
async def require_session(request: Request, call_next):
    path = request.url.path
    if is_public(path):
        return await call_next(request)

    found = await run_in_threadpool(_lookup, request)

    if found is None:
        query = urlencode({"callbackUrl": path})
        return RedirectResponse(url=f"{SIGNIN_PATH}?{query}", status_code=302)
    return await call_next(request)


# Routers
app.include_router(auth_router)
app.include_router(buyers_router)


@app.get("/health")
def health():
    return {"ok": True}
