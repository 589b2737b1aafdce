"""Scheduling repository - Database queries for bookability and weekly availability"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import (
    Payer,
    Provider,
    ProviderAvailability,
    ProviderPayerNetwork,
    SupervisionRelationship,
)


def effective_on(model, day: date):
    """Filter clauses for rows whose effective/expiration window contains `day`"""
    return (
        or_(model.effective_date.is_(None), model.effective_date <= day),
        or_(model.expiration_date.is_(None), model.expiration_date >= day),
    )


class SchedulingRepository:
    """Repository for availability database operations"""

    @staticmethod
    def get_payer(db: Session, payer_id: str) -> Optional[Payer]:
        return db.query(Payer).filter(Payer.id == payer_id).first()

    @staticmethod
    def get_in_network_provider_ids(db: Session, payer_id: str, day: date) -> list[str]:
        """Providers with a direct in-network contract for the payer on `day`"""
        rows = (
            db.query(ProviderPayerNetwork.provider_id)
            .join(Provider, Provider.id == ProviderPayerNetwork.provider_id)
            .filter(
                ProviderPayerNetwork.payer_id == payer_id,
                ProviderPayerNetwork.network_status == "in_network",
                ProviderPayerNetwork.show_in_widget.is_(True),
                Provider.is_active.is_(True),
                *effective_on(ProviderPayerNetwork, day),
            )
            .distinct()
            .all()
        )
        return [row.provider_id for row in rows]

    @staticmethod
    def get_supervised_resident_ids(db: Session, attending_ids: list[str], day: date) -> list[str]:
        """Residents with an active supervision relationship under one of the attendings on `day`"""
        if not attending_ids:
            return []
        rows = (
            db.query(SupervisionRelationship.resident_provider_id)
            .join(Provider, Provider.id == SupervisionRelationship.resident_provider_id)
            .filter(
                SupervisionRelationship.attending_provider_id.in_(attending_ids),
                SupervisionRelationship.status == "active",
                Provider.is_active.is_(True),
                *effective_on(SupervisionRelationship, day),
            )
            .distinct()
            .all()
        )
        return [row.resident_provider_id for row in rows]

    @staticmethod
    def get_providers(db: Session, provider_ids: list[str]) -> list[Provider]:
        if not provider_ids:
            return []
        return (
            db.query(Provider)
            .filter(Provider.id.in_(provider_ids))
            .order_by(Provider.last_name, Provider.first_name)
            .all()
        )

    @staticmethod
    def get_weekly_availability(
        db: Session, provider_ids: list[str], day_of_week: int, day: date
    ) -> list[ProviderAvailability]:
        """Weekly availability blocks for `day_of_week` that are in effect on `day`"""
        if not provider_ids:
            return []
        return (
            db.query(ProviderAvailability)
            .filter(
                ProviderAvailability.provider_id.in_(provider_ids),
                ProviderAvailability.day_of_week == day_of_week,
                *effective_on(ProviderAvailability, day),
            )
            .order_by(ProviderAvailability.start_time)
            .all()
        )
