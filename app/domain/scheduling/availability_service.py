"""Availability service - merged availability across every provider bookable for a payer"""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import MAX_AVAILABLE_SLOTS
from ...models import Payer, Provider, ProviderAvailability
from ...request_cache import CancellationScope
from ...services.intakeq_service import IntakeQService, appointment_interval
from ...shared.validators import parse_clock_time
from .consolidation import available_slots_to_time_slots, consolidate_time_slots
from .repository import SchedulingRepository
from .schemas import (
    AvailableSlot,
    BookableProvider,
    MergedAvailabilityData,
    MergedAvailabilityRequest,
    MergedAvailabilityResponse,
)

logger = logging.getLogger(__name__)


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def generate_time_slots(
    availability: ProviderAvailability,
    day: date,
    provider: Provider,
    appointment_duration: int,
) -> list[AvailableSlot]:
    """Back-to-back slots of `appointment_duration` minutes that fit inside the block"""
    try:
        start = datetime.combine(day, parse_clock_time(availability.start_time))
        end = datetime.combine(day, parse_clock_time(availability.end_time))
    except ValueError as e:
        logger.error(f"❌ Invalid availability block {availability.id}: {e}")
        return []

    step = timedelta(minutes=appointment_duration)
    slots = []
    current = start
    while current + step <= end:
        slots.append(
            AvailableSlot(
                date=day,
                time=current.strftime("%H:%M"),
                duration=appointment_duration,
                provider_id=provider.id,
                provider_name=provider.full_name,
                available=True,
            )
        )
        current += step
    return slots


class AvailabilityService:
    """Service layer for patient-facing availability"""

    def __init__(self, db: Session, intakeq: IntakeQService):
        self.db = db
        self.intakeq = intakeq
        self.repo = SchedulingRepository()

    def get_payer(self, payer_id: str) -> Payer:
        payer = self.repo.get_payer(self.db, payer_id)
        if not payer:
            raise HTTPException(status_code=404, detail="Payer not found")
        return payer

    def get_bookable_providers(
        self, payer: Payer, day: date, provider_id: Optional[str] = None
    ) -> list[Provider]:
        """Providers a patient with this payer can book on `day`"""
        provider_ids = self.repo.get_in_network_provider_ids(self.db, payer.id, day)

        if payer.requires_attending:
            # Residents bill under their supervising attending's contract
            residents = self.repo.get_supervised_resident_ids(self.db, provider_ids, day)
            provider_ids = list(dict.fromkeys(provider_ids + residents))

        if provider_id:
            provider_ids = [pid for pid in provider_ids if pid == provider_id]

        return self.repo.get_providers(self.db, provider_ids)

    async def filter_conflicting_appointments(
        self,
        slots: list[AvailableSlot],
        providers: list[Provider],
        day: date,
        scope: Optional[CancellationScope] = None,
    ) -> list[AvailableSlot]:
        """Drop slots that overlap an appointment already booked in the EHR"""
        practitioner_ids = {
            p.id: p.intakeq_practitioner_id for p in providers if p.intakeq_practitioner_id
        }
        if not practitioner_ids or not self.intakeq.configured:
            return slots

        lookups = await asyncio.gather(
            *(
                self.intakeq.get_appointments_for_date(practitioner_id, day, scope=scope)
                for practitioner_id in practitioner_ids.values()
            )
        )
        busy: dict[str, list[tuple[datetime, datetime]]] = {
            provider_id: [appointment_interval(a, self.intakeq.tz) for a in appointments]
            for provider_id, appointments in zip(practitioner_ids.keys(), lookups)
        }

        filtered = []
        for slot in slots:
            slot_start = datetime.combine(slot.date, parse_clock_time(slot.time))
            slot_end = slot_start + timedelta(minutes=slot.duration)
            conflict = any(
                slot_start < busy_end and slot_end > busy_start
                for busy_start, busy_end in busy.get(slot.provider_id, [])
            )
            if conflict:
                logger.debug(f"⚠️ Slot {slot.time} for {slot.provider_id} conflicts with an EHR appointment")
                continue
            filtered.append(slot)

        removed = len(slots) - len(filtered)
        if removed:
            logger.info(f"🔍 Removed {removed} slots that conflict with existing appointments")
        return filtered

    async def get_merged_availability(
        self, data: MergedAvailabilityRequest
    ) -> MergedAvailabilityResponse:
        """Consolidated slots for every provider bookable for the payer on the date"""
        payer = self.get_payer(data.payer_id)
        day = data.date

        logger.info(
            f"🔍 Getting {'provider-specific' if data.provider_id else 'merged'} availability "
            f"for payer {payer.name} on {day}"
        )

        providers = self.get_bookable_providers(payer, day, data.provider_id)
        provider_summaries = [
            BookableProvider(id=p.id, name=p.full_name, title=p.title, role=p.role_title)
            for p in providers
        ]

        if not providers:
            logger.info(f"📋 No bookable providers for {payer.name} on {day}")
            return MergedAvailabilityResponse(
                data=MergedAvailabilityData(
                    totalSlots=0,
                    date=day,
                    availableSlots=[],
                    consolidatedSlots=[],
                    providers=[],
                    message=f"{payer.name} found but no providers are bookable yet",
                )
            )

        providers_by_id = {p.id: p for p in providers}
        blocks = self.repo.get_weekly_availability(
            self.db, list(providers_by_id), day_of_week(day), day
        )

        slots: list[AvailableSlot] = []
        for block in blocks:
            slots.extend(
                generate_time_slots(
                    block, day, providers_by_id[block.provider_id], data.appointment_duration
                )
            )

        async with CancellationScope(f"merged-availability:{payer.id}:{day}") as scope:
            open_slots = await self.filter_conflicting_appointments(slots, providers, day, scope)

        open_slots.sort(key=lambda s: s.time)
        time_slots = available_slots_to_time_slots(open_slots)

        if open_slots:
            message = f"Found {len(open_slots)} available appointment slots from {len(providers)} providers"
        elif slots:
            message = f"All {len(slots)} slots from {len(providers)} providers are already booked"
        else:
            message = (
                f"Found {len(providers)} providers accepting this insurance, "
                "but no availability schedules configured"
            )

        logger.info(f"✅ {message}")

        return MergedAvailabilityResponse(
            data=MergedAvailabilityData(
                totalSlots=len(time_slots),
                date=day,
                availableSlots=time_slots[:MAX_AVAILABLE_SLOTS],
                truncated=len(time_slots) > MAX_AVAILABLE_SLOTS,
                consolidatedSlots=consolidate_time_slots(time_slots),
                providers=provider_summaries,
                message=message,
            )
        )
