"""
Administrative authorization.

Every admin capability check goes through the admin_roles table. The
ADMIN_EMAILS setting only seeds that table at startup; it is never consulted
at request time, so revoking a role takes effect on the next request.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from fastapi import Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from .auth import Identity, get_current_identity
from .config import ADMIN_EMAILS
from .database import get_db
from .models import AdminRole

logger = logging.getLogger(__name__)

SUPERVISION_READ = "supervision:read"
SUPERVISION_WRITE = "supervision:write"
AVAILABILITY_READ = "availability:read"
ROLES_READ = "roles:read"
ROLES_MANAGE = "roles:manage"

ALL_CAPABILITIES = frozenset(
    {SUPERVISION_READ, SUPERVISION_WRITE, AVAILABILITY_READ, ROLES_READ, ROLES_MANAGE}
)

ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "super_admin": ALL_CAPABILITIES,
    "admin": frozenset({SUPERVISION_READ, SUPERVISION_WRITE, AVAILABILITY_READ, ROLES_READ}),
    "viewer": frozenset({SUPERVISION_READ, AVAILABILITY_READ, ROLES_READ}),
}


@dataclass(frozen=True)
class AdminContext:
    identity: Identity
    capabilities: frozenset[str]

    @property
    def actor(self) -> str:
        """Who to record as having performed an action"""
        return self.identity.email or self.identity.user_id


def capabilities_for(identity: Identity, role_rows: Iterable[AdminRole]) -> frozenset[str]:
    """Union of the capabilities of every role assigned to the identity's email"""
    if not identity.email:
        return frozenset()

    email = identity.email.lower()
    capabilities: set[str] = set()
    for row in role_rows:
        if (row.email or "").lower() != email:
            continue
        granted = ROLE_CAPABILITIES.get(row.role)
        if granted is None:
            logger.warning(f"⚠️ Unknown admin role '{row.role}' assigned to {row.email}")
            continue
        capabilities |= granted
    return frozenset(capabilities)


def get_roles_for_email(db: Session, email: str) -> list[AdminRole]:
    return db.query(AdminRole).filter(func.lower(AdminRole.email) == email.lower()).all()


async def get_admin_context(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> AdminContext:
    """Identity plus the capabilities currently granted in admin_roles"""
    rows = get_roles_for_email(db, identity.email) if identity.email else []
    return AdminContext(identity=identity, capabilities=capabilities_for(identity, rows))


def require_capability(capability: str):
    """
    Create a dependency that only lets callers holding `capability` through

    Example usage:
        @router.get("", dependencies=[Depends(require_capability(SUPERVISION_READ))])
    """

    async def checker(admin: AdminContext = Depends(get_admin_context)) -> AdminContext:
        if capability not in admin.capabilities:
            logger.warning(
                f"🚫 {admin.identity.email or admin.identity.user_id} denied '{capability}'"
            )
            raise HTTPException(status_code=403, detail="Admin access required")
        return admin

    return checker


def seed_admin_roles(db: Session, emails: Iterable[str] = ADMIN_EMAILS) -> int:
    """Give every seed email the super_admin role if it has no role yet. Returns rows added."""
    added = 0
    for email in emails:
        email = email.strip().lower()
        if not email:
            continue
        if get_roles_for_email(db, email):
            continue
        db.add(AdminRole(email=email, role="super_admin", created_by="seed"))
        added += 1

    if added:
        db.commit()
        logger.info(f"✅ Seeded {added} admin role(s) from ADMIN_EMAILS")
    return added
