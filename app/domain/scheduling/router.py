"""Patient booking router - FastAPI endpoints for merged availability and slot consolidation"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from ...services.intakeq_service import IntakeQService, get_intakeq_service
from .availability_service import AvailabilityService
from .consolidation import SlotNotFoundError, consolidate_time_slots, select_consolidated_slot
from .schemas import (
    ConsolidateSlotsRequest,
    ConsolidateSlotsResponse,
    MergedAvailabilityRequest,
    MergedAvailabilityResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patient-booking", tags=["Patient Booking"])

# Public endpoints, limited per client IP
availability_rate_limit = create_rate_limiter(limit=60, window_seconds=60, key_prefix="availability")


def get_availability_service(
    db: Session = Depends(get_db),
    intakeq: IntakeQService = Depends(get_intakeq_service),
) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db, intakeq)


# ============================================================================
# PUBLIC BOOKING ENDPOINTS
# ============================================================================


@router.post("/merged-availability", response_model=MergedAvailabilityResponse)
async def get_merged_availability(
    data: MergedAvailabilityRequest,
    _: None = Depends(availability_rate_limit),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Consolidated availability across every provider bookable for a payer on a date"""
    try:
        return await service.get_merged_availability(data)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"❌ Error getting merged availability for payer {data.payer_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to get merged availability")


@router.post("/consolidate-slots", response_model=ConsolidateSlotsResponse)
async def consolidate_slots(
    data: ConsolidateSlotsRequest,
    _: None = Depends(availability_rate_limit),
):
    """Group caller-supplied slots by clock time and optionally bind a selection"""
    consolidated = consolidate_time_slots(data.slots)

    if not data.selected_time:
        return ConsolidateSlotsResponse(consolidatedSlots=consolidated)

    try:
        consolidated, selected = select_consolidated_slot(
            consolidated, data.selected_time, data.provider_id
        )
    except SlotNotFoundError:
        raise HTTPException(status_code=404, detail=f"No slots available at {data.selected_time}")

    logger.info(f"🎯 Selected {data.selected_time} -> provider {selected.provider_id}")
    return ConsolidateSlotsResponse(consolidatedSlots=consolidated, selectedSlot=selected)


__all__ = ["router"]
