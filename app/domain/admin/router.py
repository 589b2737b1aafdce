"""Admin router - FastAPI endpoints for the caller's capabilities and role assignments"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...admin_auth import ROLES_MANAGE, ROLES_READ, AdminContext, get_admin_context, require_capability
from ...database import get_db
from ...models import AdminRole
from .schemas import AdminMeResponse, AdminRoleCreate, AdminRoleResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/me", response_model=AdminMeResponse)
async def get_me(admin: AdminContext = Depends(get_admin_context)):
    """Current identity and the capabilities it holds (empty for non-admins)"""
    return AdminMeResponse(
        user_id=admin.identity.user_id,
        email=admin.identity.email,
        capabilities=sorted(admin.capabilities),
    )


# ============================================================================
# ROLE ASSIGNMENTS
# ============================================================================


@router.get("/roles", response_model=list[AdminRoleResponse])
async def list_roles(
    _: AdminContext = Depends(require_capability(ROLES_READ)),
    db: Session = Depends(get_db),
):
    """List every role assignment"""
    return db.query(AdminRole).order_by(AdminRole.email, AdminRole.role).all()


@router.post("/roles", response_model=AdminRoleResponse, status_code=201)
async def grant_role(
    data: AdminRoleCreate,
    admin: AdminContext = Depends(require_capability(ROLES_MANAGE)),
    db: Session = Depends(get_db),
):
    """Grant a role to an email"""
    role = AdminRole(email=data.email, role=data.role, created_by=admin.actor)
    db.add(role)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise HTTPException(
            status_code=409, detail=f"{data.email} already has the {data.role} role"
        ) from e
    db.refresh(role)

    logger.info(f"✅ {admin.actor} granted {data.role} to {data.email}")
    return role


@router.delete("/roles/{role_id}")
async def revoke_role(
    role_id: int,
    admin: AdminContext = Depends(require_capability(ROLES_MANAGE)),
    db: Session = Depends(get_db),
):
    """Revoke a role assignment"""
    role = db.query(AdminRole).filter(AdminRole.id == role_id).first()
    if not role:
        raise HTTPException(status_code=404, detail="Role assignment not found")

    db.delete(role)
    db.commit()

    logger.info(f"🗑️ {admin.actor} revoked {role.role} from {role.email}")
    return {"success": True, "message": "Role revoked"}


__all__ = ["router"]
