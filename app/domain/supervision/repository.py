"""Supervision repository - Database operations for supervision relationships"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import Provider, SchedulerAuditLog, SupervisionRelationship, generate_uuid


class SupervisionRepository:
    """Repository for supervision relationship database operations"""

    @staticmethod
    def list_relationships(
        db: Session,
        search: Optional[str] = None,
        resident_provider_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[SupervisionRelationship]:
        """List relationships, newest first, with both providers loaded"""
        query = db.query(SupervisionRelationship).options(
            joinedload(SupervisionRelationship.resident),
            joinedload(SupervisionRelationship.attending),
        )

        if resident_provider_id:
            query = query.filter(SupervisionRelationship.resident_provider_id == resident_provider_id)
        if status:
            query = query.filter(SupervisionRelationship.status == status)
        if search:
            term = f"%{search.strip()}%"
            matching_providers = db.query(Provider.id).filter(
                or_(
                    Provider.first_name.ilike(term),
                    Provider.last_name.ilike(term),
                    Provider.email.ilike(term),
                )
            )
            query = query.filter(
                or_(
                    SupervisionRelationship.resident_provider_id.in_(matching_providers),
                    SupervisionRelationship.attending_provider_id.in_(matching_providers),
                )
            )

        return query.order_by(SupervisionRelationship.created_at.desc()).all()

    @staticmethod
    def get_relationship(db: Session, relationship_id: str) -> Optional[SupervisionRelationship]:
        return (
            db.query(SupervisionRelationship)
            .filter(SupervisionRelationship.id == relationship_id)
            .first()
        )

    @staticmethod
    def get_provider(db: Session, provider_id: str) -> Optional[Provider]:
        return db.query(Provider).filter(Provider.id == provider_id).first()

    @staticmethod
    def get_resident_relationships(db: Session, resident_id: str) -> list[SupervisionRelationship]:
        """All relationships of a resident, without locking (advisory checks)"""
        return (
            db.query(SupervisionRelationship)
            .filter(SupervisionRelationship.resident_provider_id == resident_id)
            .all()
        )

    @staticmethod
    def lock_resident_relationships(db: Session, resident_id: str) -> list[SupervisionRelationship]:
        """
        Lock the resident and all of their relationships for the current transaction.

        The provider row is locked too so that two first-time inserts for the same
        resident also serialize. Rows are re-read from the database, not the identity map.
        """
        db.query(Provider).filter(Provider.id == resident_id).with_for_update().first()
        return (
            db.query(SupervisionRelationship)
            .filter(SupervisionRelationship.resident_provider_id == resident_id)
            .populate_existing()
            .with_for_update()
            .all()
        )

    @staticmethod
    def add_relationship(db: Session, **data) -> SupervisionRelationship:
        """Stage a new relationship; the caller commits"""
        relationship = SupervisionRelationship(id=generate_uuid(), **data)
        db.add(relationship)
        return relationship

    @staticmethod
    def apply_updates(relationship: SupervisionRelationship, **updates) -> SupervisionRelationship:
        for key, value in updates.items():
            if hasattr(relationship, key):
                setattr(relationship, key, value)
        return relationship

    @staticmethod
    def add_audit_log(db: Session, **data) -> SchedulerAuditLog:
        log = SchedulerAuditLog(**data)
        db.add(log)
        db.commit()
        return log
