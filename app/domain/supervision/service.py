"""Supervision service - Business logic for supervision relationship operations"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import SupervisionRelationship
from .repository import SupervisionRepository
from .schemas import (
    SupervisionCandidate,
    SupervisionRelationshipCreate,
    SupervisionRelationshipUpdate,
    SupervisionValidationRequest,
    SupervisionValidationResponse,
)
from .validator import validate_relationship

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "supervision_relationship"

SNAPSHOT_FIELDS = (
    "id",
    "resident_provider_id",
    "attending_provider_id",
    "designation",
    "effective_date",
    "expiration_date",
    "modality_constraints",
    "concurrency_cap",
    "supervision_level",
    "status",
    "notes",
)

DIFF_FIELDS = (
    "designation",
    "effective_date",
    "expiration_date",
    "modality_constraints",
    "concurrency_cap",
    "status",
    "notes",
)

# Columns that cannot be cleared by a partial update
REQUIRED_FIELDS = {"attending_provider_id", "designation", "effective_date", "status"}


@dataclass
class RequestMeta:
    """Who made the change and from where, for the audit trail"""

    actor: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def _serialize(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def snapshot(relationship: SupervisionRelationship) -> dict:
    """JSON-safe copy of a relationship's fields"""
    return {field: _serialize(getattr(relationship, field)) for field in SNAPSHOT_FIELDS}


def calculate_diff(before: dict, after: dict) -> list[dict]:
    """Changed fields between two snapshots; modality order is ignored"""
    diff = []
    for field in DIFF_FIELDS:
        old_value = before.get(field)
        new_value = after.get(field)
        if field == "modality_constraints":
            changed = sorted(old_value or []) != sorted(new_value or [])
        else:
            changed = old_value != new_value
        if changed:
            diff.append({"field": field, "old_value": old_value, "new_value": new_value})
    return diff


def conflict(errors: list[str]) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"message": "Supervision relationship conflicts with existing data", "errors": errors},
    )


class SupervisionService:
    """Service layer for supervision relationship business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SupervisionRepository()

    def list_relationships(
        self,
        search: Optional[str] = None,
        resident_provider_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[SupervisionRelationship]:
        relationships = self.repo.list_relationships(self.db, search, resident_provider_id, status)
        logger.info(f"✅ Found {len(relationships)} supervision relationships")
        return relationships

    def get_relationship(self, relationship_id: str) -> SupervisionRelationship:
        relationship = self.repo.get_relationship(self.db, relationship_id)
        if not relationship:
            raise HTTPException(status_code=404, detail="Supervision relationship not found")
        return relationship

    def validate(self, data: SupervisionValidationRequest) -> SupervisionValidationResponse:
        """Advisory check against the current rows; writes validate again under lock"""
        existing = (
            self.repo.get_resident_relationships(self.db, data.resident_provider_id)
            if data.resident_provider_id
            else []
        )
        errors = validate_relationship(data, existing, editing_id=data.editing_id)
        return SupervisionValidationResponse(valid=not errors, errors=errors)

    def _require_providers(self, *provider_ids: str) -> None:
        for provider_id in provider_ids:
            if not self.repo.get_provider(self.db, provider_id):
                raise HTTPException(status_code=400, detail=f"Provider {provider_id} not found")

    def _commit(self, relationship_id: str) -> None:
        """Commit, turning storage-level rule violations into 409s"""
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            message = str(e.orig)
            logger.warning(f"⚠️ Integrity error writing supervision relationship {relationship_id}: {message}")
            if "uq_supervision_active_primary" in message or "UNIQUE constraint failed" in message:
                raise conflict(["Resident already has a primary supervising physician"]) from e
            if "no_self_supervision" in message:
                raise conflict(["Resident and attending cannot be the same person"]) from e
            raise conflict(["Relationship violates a database constraint"]) from e

    def _audit(
        self,
        action: str,
        relationship_id: str,
        meta: RequestMeta,
        before: Optional[dict],
        after: Optional[dict],
        diff: list[dict],
    ) -> None:
        """Record an audit entry; failures are logged and never fail the write"""
        try:
            self.repo.add_audit_log(
                self.db,
                action=action,
                resource_type=RESOURCE_TYPE,
                resource_id=relationship_id,
                performed_by=meta.actor,
                changes={"before": before, "after": after, "diff": diff},
                ip_address=meta.ip_address or "unknown",
                user_agent=(meta.user_agent or "unknown")[:500],
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create audit log for {action} {relationship_id}: {str(e)}")

    def create_relationship(
        self, data: SupervisionRelationshipCreate, meta: RequestMeta
    ) -> SupervisionRelationship:
        """Create a relationship after validating it against the locked rows of the resident"""
        logger.info(
            f"➕ Creating supervision relationship {data.resident_provider_id} → {data.attending_provider_id}"
        )
        self._require_providers(data.resident_provider_id, data.attending_provider_id)

        existing = self.repo.lock_resident_relationships(self.db, data.resident_provider_id)
        candidate = SupervisionCandidate(**data.model_dump(), status="active")
        errors = validate_relationship(candidate, existing)
        if errors:
            self.db.rollback()
            logger.warning(f"⚠️ Supervision relationship rejected: {errors}")
            raise conflict(errors)

        relationship = self.repo.add_relationship(
            self.db,
            **data.model_dump(),
            status="active",
            created_by=meta.actor,
            updated_by=meta.actor,
        )
        relationship_id = relationship.id
        self._commit(relationship_id)
        self.db.refresh(relationship)

        logger.info(f"✅ Supervision relationship created: {relationship_id}")
        self._audit(
            "supervision_relationship_created",
            relationship_id,
            meta,
            before=None,
            after=snapshot(relationship),
            diff=[],
        )
        return relationship

    def update_relationship(
        self, relationship_id: str, data: SupervisionRelationshipUpdate, meta: RequestMeta
    ) -> SupervisionRelationship:
        """Partially update a relationship; the merged result is validated under lock"""
        relationship = self.get_relationship(relationship_id)
        resident_id = relationship.resident_provider_id

        existing = self.repo.lock_resident_relationships(self.db, resident_id)
        before = snapshot(relationship)

        updates = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if not (value is None and key in REQUIRED_FIELDS)
        }
        if "attending_provider_id" in updates:
            self._require_providers(updates["attending_provider_id"])

        candidate = SupervisionCandidate(**{**before, **updates})
        errors = validate_relationship(candidate, existing, editing_id=relationship_id)
        if errors:
            self.db.rollback()
            logger.warning(f"⚠️ Supervision relationship {relationship_id} update rejected: {errors}")
            raise conflict(errors)

        self.repo.apply_updates(relationship, **updates, updated_by=meta.actor)
        self._commit(relationship_id)
        self.db.refresh(relationship)

        after = snapshot(relationship)
        diff = calculate_diff(before, after)
        logger.info(f"✅ Supervision relationship updated: {relationship_id} ({len(diff)} field(s) changed)")
        self._audit("supervision_relationship_updated", relationship_id, meta, before, after, diff)
        return relationship

    def delete_relationship(self, relationship_id: str, meta: RequestMeta) -> None:
        relationship = self.get_relationship(relationship_id)
        before = snapshot(relationship)

        self.db.delete(relationship)
        self.db.commit()

        logger.info(f"🗑️ Supervision relationship deleted: {relationship_id}")
        self._audit("supervision_relationship_deleted", relationship_id, meta, before, None, [])
