# backend/app/routes/v1/jobs.py
"""
Scheduled job routes - API v1

Versioned job endpoints under /api/v1/jobs. Called by the external
scheduler (cron secret) and by the offer-loop trigger (internal secret).
All business logic delegated to the job services.

Endpoints:
    POST /offer-loop        → Advance one slot opening by one offer
    POST /expire-offers     → Expire due offers and trigger the next ones
    POST /recompute-scores  → Recompute reliability scores and no-show stats
    POST /resolve-outcomes  → Resolve financial outcomes of ended appointments
"""

import hmac
import logging
from typing import NoReturn, Optional, Union

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from fastapi.responses import JSONResponse

from ...api.dependencies.services import (
    get_outcome_resolution_service,
    get_score_recompute_service,
    get_slot_recovery_job_service,
    get_slot_recovery_service,
)
from ...core.config import settings
from ...core.constants import CRON_SECRET_HEADER, INTERNAL_SECRET_HEADER
from ...core.exceptions import (
    ConfigurationException,
    DomainException,
    UnauthorizedException,
    ValidationException,
)
from ...schemas.jobs import (
    ExpireOffersResponse,
    JobSkippedResponse,
    OfferLoopRequest,
    OfferLoopResponse,
    RecomputeScoresResponse,
    ResolveOutcomesResponse,
)
from ...services.outcome_resolution_service import OutcomeResolutionService
from ...services.score_recompute_service import ScoreRecomputeService
from ...services.slot_recovery_jobs import SlotRecoveryJobService
from ...services.slot_recovery_service import SlotRecoveryService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["jobs-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _verify_shared_secret(provided: Optional[str], setting_name: str, header: str) -> None:
    expected = settings.secret_value(setting_name)
    if expected is None:
        logger.error("job_secret_not_configured", extra={"setting": setting_name})
        raise ConfigurationException(
            f"{setting_name.upper()} is not configured", code="SECRET_NOT_CONFIGURED"
        )
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("job_secret_mismatch", extra={"header": header})
        raise UnauthorizedException("Unauthorized", code="INVALID_JOB_SECRET")


def require_cron_secret(
    x_cron_secret: Optional[str] = Header(default=None, alias=CRON_SECRET_HEADER),
) -> None:
    try:
        _verify_shared_secret(x_cron_secret, "cron_secret", CRON_SECRET_HEADER)
    except DomainException as exc:
        handle_domain_exception(exc)


def require_internal_secret(
    x_internal_secret: Optional[str] = Header(default=None, alias=INTERNAL_SECRET_HEADER),
) -> None:
    try:
        _verify_shared_secret(x_internal_secret, "internal_secret", INTERNAL_SECRET_HEADER)
    except DomainException as exc:
        handle_domain_exception(exc)


def _skipped(reason: Optional[str]) -> JSONResponse:
    return JSONResponse(JobSkippedResponse(reason=reason or "locked").model_dump())


@router.post(
    "/offer-loop",
    response_model=OfferLoopResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_internal_secret)],
)
def run_offer_loop(
    payload: Optional[OfferLoopRequest] = Body(default=None),
    service: SlotRecoveryService = Depends(get_slot_recovery_service),
) -> OfferLoopResponse:
    slot_opening_id = (payload.slot_opening_id or "").strip() if payload else ""
    try:
        if not slot_opening_id:
            raise ValidationException("slot_opening_id is required", code="MISSING_SLOT_OPENING_ID")
        outcome = service.run_offer_loop_step(slot_opening_id)
    except DomainException as exc:
        handle_domain_exception(exc)

    return OfferLoopResponse(
        success=outcome.success,
        skipped=outcome.skipped or None,
        completed=outcome.completed or None,
        reason=outcome.reason,
        customer_id=outcome.customer_id,
        customer_phone=outcome.customer_phone,
        offer_id=outcome.offer_id,
    )


@router.post(
    "/expire-offers",
    response_model=None,
    dependencies=[Depends(require_cron_secret)],
)
def expire_offers(
    service: SlotRecoveryJobService = Depends(get_slot_recovery_job_service),
) -> Union[ExpireOffersResponse, JSONResponse]:
    try:
        result = service.run_expiry_sweep()
    except DomainException as exc:
        handle_domain_exception(exc)

    if result.skipped:
        return _skipped(result.reason)
    return ExpireOffersResponse(
        total=result.total,
        expired=result.expired,
        triggered=result.triggered,
        errors=result.errors,
    )


@router.post(
    "/recompute-scores",
    response_model=None,
    dependencies=[Depends(require_cron_secret)],
)
def recompute_scores(
    service: ScoreRecomputeService = Depends(get_score_recompute_service),
) -> Union[RecomputeScoresResponse, JSONResponse]:
    try:
        result = service.recompute_all()
    except DomainException as exc:
        handle_domain_exception(exc)

    if result.skipped:
        return _skipped(result.reason)
    return RecomputeScoresResponse(
        processed=result.processed,
        errors=len(result.errors),
        error_details=result.error_details,
    )


@router.post(
    "/resolve-outcomes",
    response_model=None,
    dependencies=[Depends(require_cron_secret)],
)
def resolve_outcomes(
    limit: Optional[int] = Query(default=None, description="Maximum appointments to resolve"),
    service: OutcomeResolutionService = Depends(get_outcome_resolution_service),
) -> Union[ResolveOutcomesResponse, JSONResponse]:
    try:
        result = service.resolve_due(limit=limit)
    except DomainException as exc:
        handle_domain_exception(exc)

    if result.locked:
        return _skipped("locked")
    return ResolveOutcomesResponse(
        total=result.total,
        resolved=result.resolved,
        skipped=result.skipped,
        backfilled=result.backfilled,
        errors=result.errors,
    )
