"""Ops endpoints."""
from fastapi import APIRouter, Depends
from imgsearch.api.deps import get_rt, get_uow
from imgsearch.api.schemas.status import SystemStatus
from imgsearch.infra.db.uow import UnitOfWork
from imgsearch.runtime import Runtime
from imgsearch.services.status_service import StatusService

router = APIRouter(tags=["ops"])


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/status", response_model=SystemStatus)
def status(uow: UnitOfWork = Depends(get_uow), rt: Runtime = Depends(get_rt)) -> SystemStatus:
    return StatusService(uow, rt).get_status()
