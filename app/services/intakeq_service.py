import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

import httpx

from ..config import (
    INTAKEQ_API_KEY,
    INTAKEQ_APPOINTMENT_CACHE_TTL,
    INTAKEQ_BASE_URL,
    INTAKEQ_DAILY_LIMIT,
    INTAKEQ_TIMEOUT_SECONDS,
    PRACTICE_TIMEZONE,
)
from ..rate_limiter import check_rate_limit, get_redis_client
from ..request_cache import CancellationScope, RequestCache

logger = logging.getLogger(__name__)

DAILY_BUDGET_KEY = "intakeq:daily_requests"
DEFAULT_APPOINTMENT_MINUTES = 60


class IntakeQError(Exception):
    """IntakeQ request could not be completed"""


class IntakeQRateLimitError(IntakeQError):
    """Daily outbound request budget exhausted"""


def appointment_interval(appointment: dict, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    Naive local (start, end) of an IntakeQ appointment.

    IntakeQ reports StartDate/EndDate as epoch milliseconds (UTC). A missing
    EndDate is treated as a 60 minute appointment.
    """
    start = datetime.fromtimestamp(appointment["StartDate"] / 1000, tz)
    end_ms = appointment.get("EndDate")
    if end_ms:
        end = datetime.fromtimestamp(end_ms / 1000, tz)
    else:
        end = start + timedelta(minutes=DEFAULT_APPOINTMENT_MINUTES)
    return start.replace(tzinfo=None), end.replace(tzinfo=None)


class IntakeQService:
    """Service for reading appointments from the IntakeQ EHR API"""

    def __init__(
        self,
        api_key: Optional[str] = INTAKEQ_API_KEY,
        base_url: str = INTAKEQ_BASE_URL,
        cache: Optional[RequestCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        daily_limit: int = INTAKEQ_DAILY_LIMIT,
        timezone: str = PRACTICE_TIMEZONE,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.cache = cache if cache is not None else RequestCache()
        self.transport = transport
        self.daily_limit = daily_limit
        self.tz = ZoneInfo(timezone)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        if not self.api_key:
            raise IntakeQError("IntakeQ API key not configured")

        is_allowed, count, ttl = check_rate_limit(
            DAILY_BUDGET_KEY, self.daily_limit, 24 * 60 * 60, get_redis_client()
        )
        if not is_allowed:
            logger.warning(f"🚫 IntakeQ daily budget exhausted ({count}/{self.daily_limit}), resets in {ttl}s")
            raise IntakeQRateLimitError(f"Daily API limit reached ({self.daily_limit} requests)")

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=INTAKEQ_TIMEOUT_SECONDS,
            transport=self.transport,
        ) as client:
            response = await client.request(
                method,
                endpoint,
                params=params,
                json=json,
                headers={"X-Auth-Key": self.api_key, "Content-Type": "application/json"},
            )

            if response.status_code >= 400:
                logger.error(
                    f"❌ IntakeQ {method} {endpoint} failed: {response.status_code} {response.text[:200]}"
                )

            response.raise_for_status()
            return response.json()

    async def list_appointments(
        self,
        start_date: date,
        end_date: date,
        scope: Optional[CancellationScope] = None,
    ) -> list[dict]:
        """All appointments between two dates, shared across callers through the request cache"""
        params = {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()}
        key = RequestCache.build_key(
            f"{self.base_url}/appointments", cache_key=f"{params['startDate']}:{params['endDate']}"
        )

        async def fetch() -> list[dict]:
            return await self._request("GET", "/appointments", params=params)

        try:
            return await self.cache.fetch(
                key, fetch, ttl=INTAKEQ_APPOINTMENT_CACHE_TTL, scope=scope
            )
        except (httpx.HTTPError, IntakeQError) as e:
            stale = self.cache.stale(key)
            if stale is not None:
                logger.warning(f"⚡ IntakeQ request failed ({e}), using stale cached appointments")
                return stale
            raise

    async def get_appointments_for_date(
        self,
        practitioner_id: str,
        day: date,
        scope: Optional[CancellationScope] = None,
    ) -> list[dict]:
        """
        Non-cancelled appointments of one practitioner that start on `day`
        (practice local time).

        Returns an empty list when IntakeQ cannot be reached and nothing is cached,
        so availability can still be computed without conflict checking.
        """
        try:
            # The UTC day can straddle two local days, so ask for both neighbours
            appointments = await self.list_appointments(
                day - timedelta(days=1), day + timedelta(days=1), scope=scope
            )
        except (httpx.HTTPError, IntakeQError) as e:
            logger.error(f"❌ Failed to fetch IntakeQ appointments for {practitioner_id} on {day}: {e}")
            logger.warning("⚠️ Continuing without IntakeQ conflict checking")
            return []

        day_start = datetime.combine(day, time.min, self.tz)
        day_end = day_start + timedelta(days=1)
        start_ms = int(day_start.timestamp() * 1000)
        end_ms = int(day_end.timestamp() * 1000)

        matching = [
            appointment
            for appointment in appointments or []
            if appointment.get("PractitionerId") == practitioner_id
            and appointment.get("Status") != "Cancelled"
            and isinstance(appointment.get("StartDate"), (int, float))
            and start_ms <= appointment["StartDate"] < end_ms
        ]

        logger.info(
            f"📅 Found {len(matching)} IntakeQ appointments for practitioner {practitioner_id} on {day}"
        )
        return matching


_intakeq_service: Optional[IntakeQService] = None


def get_intakeq_service() -> IntakeQService:
    """Shared IntakeQ service (one request cache per process)"""
    global _intakeq_service
    if _intakeq_service is None:
        _intakeq_service = IntakeQService()
    return _intakeq_service
