"""
Loyalty endpoints
=================

GET /api/v1/loyalty/me -- the caller's points, distance and CO2 saved
"""

from fastapi import APIRouter, Depends, Request

from greenride.api.dependencies import get_current_identity, get_ledger
from greenride.api.middleware import limiter
from greenride.api.schemas import LoyaltyResponse
from greenride.config import settings
from greenride.domain.entities import Identity
from greenride.services.loyalty import LoyaltyLedger

router = APIRouter(prefix="/loyalty", tags=["loyalty"])


@router.get("/me", response_model=LoyaltyResponse, summary="My loyalty record")
@limiter.limit(settings.rate_limit)
async def my_loyalty(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    ledger: LoyaltyLedger = Depends(get_ledger),
):
    return await ledger.get_or_create(identity.id)
