"""FastAPI dependencies."""
from __future__ import annotations
from typing import Generator
from fastapi import Header, HTTPException
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.runtime import Runtime, get_runtime


def get_uow() -> Generator[UnitOfWork, None, None]:
    """Yield one UnitOfWork per request; commit/rollback in __exit__."""
    with UnitOfWork() as uow:
        yield uow


def get_current_user(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the authenticating proxy in front of the API."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_rt() -> Runtime:
    return get_runtime()
