import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class Provider(Base):
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    title = Column(String(50), nullable=True)  # MD, DO, PMHNP...
    role_title = Column(String(100), nullable=True)  # Resident, Attending Physician...
    is_active = Column(Boolean, default=True, nullable=False)
    accepts_new_patients = Column(Boolean, default=True, nullable=False)
    # Practitioner id in the EHR, used to look up booked appointments
    intakeq_practitioner_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    networks = relationship("ProviderPayerNetwork", back_populates="provider")
    availability = relationship("ProviderAvailability", back_populates="provider")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Payer(Base):
    __tablename__ = "payers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    payer_type = Column(String(50), nullable=True)  # medicaid, commercial, self_pay...
    state = Column(String(2), nullable=True)
    # Residents bill under a supervising attending's contract for these payers
    requires_attending = Column(Boolean, default=False, nullable=False)
    credentialing_status = Column(String(50), nullable=True)
    effective_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    networks = relationship("ProviderPayerNetwork", back_populates="payer")


class ProviderPayerNetwork(Base):
    """A provider's direct contract (network participation) with a payer"""

    __tablename__ = "provider_payer_networks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=False, index=True)
    payer_id = Column(String(36), ForeignKey("payers.id"), nullable=False, index=True)
    network_status = Column(String(50), default="in_network", nullable=False)
    effective_date = Column(Date, nullable=False)
    expiration_date = Column(Date, nullable=True)
    show_in_widget = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    provider = relationship("Provider", back_populates="networks")
    payer = relationship("Payer", back_populates="networks")


class ProviderAvailability(Base):
    """Recurring weekly availability block"""

    __tablename__ = "provider_availability"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(String(8), nullable=False)  # HH:MM or HH:MM:SS
    end_time = Column(String(8), nullable=False)
    effective_date = Column(Date, nullable=True)
    expiration_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    provider = relationship("Provider", back_populates="availability")

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day_of_week"),
    )


class SupervisionRelationship(Base):
    """Attending (supervisor) to resident (supervisee) assignment"""

    __tablename__ = "supervision_relationships"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    resident_provider_id = Column(
        String(36), ForeignKey("providers.id"), nullable=False, index=True
    )
    attending_provider_id = Column(
        String(36), ForeignKey("providers.id"), nullable=False, index=True
    )
    designation = Column(String(20), default="primary", nullable=False)  # primary, secondary
    effective_date = Column(Date, nullable=False)
    expiration_date = Column(Date, nullable=True)  # null = open-ended
    modality_constraints = Column(JSON, default=list, nullable=True)  # telehealth, in_person...
    concurrency_cap = Column(Integer, nullable=True)
    # sign_off_only, first_visit_in_person, co_visit_required
    supervision_level = Column(String(50), default="sign_off_only", nullable=True)
    status = Column(String(20), default="active", nullable=False)  # active, inactive, pending
    notes = Column(Text, nullable=True)
    created_by = Column(String(255), nullable=True)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    resident = relationship("Provider", foreign_keys=[resident_provider_id])
    attending = relationship("Provider", foreign_keys=[attending_provider_id])

    __table_args__ = (
        CheckConstraint(
            "resident_provider_id != attending_provider_id", name="no_self_supervision"
        ),
        CheckConstraint("designation IN ('primary', 'secondary')", name="ck_supervision_designation"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'pending')", name="ck_supervision_status"
        ),
        CheckConstraint(
            "concurrency_cap IS NULL OR (concurrency_cap >= 1 AND concurrency_cap <= 100)",
            name="ck_supervision_concurrency_cap",
        ),
        # At most one active primary relationship per resident
        Index(
            "uq_supervision_active_primary",
            "resident_provider_id",
            unique=True,
            postgresql_where=text("designation = 'primary' AND status = 'active'"),
            sqlite_where=text("designation = 'primary' AND status = 'active'"),
        ),
    )

    @property
    def resident_name(self) -> str:
        return self.resident.full_name if self.resident else "Unknown Resident"

    @property
    def attending_name(self) -> str:
        return self.attending.full_name if self.attending else "Unknown Attending"

    @property
    def modality_display(self) -> str:
        if self.modality_constraints:
            return ", ".join(self.modality_constraints)
        return "All modalities"


class SchedulerAuditLog(Base):
    __tablename__ = "scheduler_audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(100), nullable=False)
    resource_type = Column(String(100), nullable=False)
    resource_id = Column(String(36), nullable=False, index=True)
    performed_by = Column(String(255), nullable=False)
    changes = Column(JSON, nullable=True)  # {"before": ..., "after": ..., "diff": [...]}
    ip_address = Column(String(100), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class AdminRole(Base):
    """Role assignment for an administrator, keyed by login email"""

    __tablename__ = "admin_roles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(50), nullable=False)  # super_admin, admin, viewer
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("uq_admin_roles_email_role", "email", "role", unique=True),
    )
