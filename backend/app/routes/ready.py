from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from app.core.redis import get_redis_client
from app.database import SessionLocal
from app.schemas.main_responses import ReadyProbeResponse

router = APIRouter(tags=["internal"])
logger = logging.getLogger(__name__)


@router.get("/ready", response_model=ReadyProbeResponse)
def ready_probe(response_obj: Response) -> ReadyProbeResponse:
    try:
        with SessionLocal() as session:
            session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("/ready: database not reachable: %s", exc)
        response_obj.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadyProbeResponse(status="db_not_ready")

    try:
        get_redis_client().ping()
    except Exception as exc:
        logger.warning("/ready: lock store not reachable: %s", exc)
        response_obj.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadyProbeResponse(status="lock_store_not_ready")

    return ReadyProbeResponse(status="ok")
