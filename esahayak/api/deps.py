from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from esahayak.db.session import SessionLocal


def session_factory(request: Request) -> sessionmaker:
    # tests swap the factory on app.state
    return getattr(request.app.state, "session_factory", None) or SessionLocal


def get_db(request: Request) -> Generator[Session, None, None]:
    db = session_factory(request)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
