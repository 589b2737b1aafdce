"""Supervision router - FastAPI endpoints for supervision relationship administration"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...admin_auth import SUPERVISION_READ, SUPERVISION_WRITE, AdminContext, require_capability
from ...database import get_db
from ...rate_limiter import client_ip
from .schemas import (
    SupervisionRelationshipCreate,
    SupervisionRelationshipResponse,
    SupervisionRelationshipUpdate,
    SupervisionValidationRequest,
    SupervisionValidationResponse,
)
from .service import RequestMeta, SupervisionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/supervision-relationships", tags=["Supervision"])


def get_supervision_service(db: Session = Depends(get_db)) -> SupervisionService:
    """Dependency injection for SupervisionService"""
    return SupervisionService(db)


def request_meta(request: Request, admin: AdminContext) -> RequestMeta:
    return RequestMeta(
        actor=admin.actor,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[SupervisionRelationshipResponse])
async def list_relationships(
    search: Optional[str] = Query(None),
    resident_provider_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    admin: AdminContext = Depends(require_capability(SUPERVISION_READ)),
    service: SupervisionService = Depends(get_supervision_service),
):
    """List supervision relationships, newest first"""
    logger.info(f"🔍 {admin.actor} fetching supervision relationships")
    return service.list_relationships(search, resident_provider_id, status)


@router.post("", response_model=SupervisionRelationshipResponse, status_code=201)
async def create_relationship(
    data: SupervisionRelationshipCreate,
    request: Request,
    admin: AdminContext = Depends(require_capability(SUPERVISION_WRITE)),
    service: SupervisionService = Depends(get_supervision_service),
):
    """Create a supervision relationship"""
    return service.create_relationship(data, request_meta(request, admin))


@router.post("/validate", response_model=SupervisionValidationResponse)
async def validate_relationship(
    data: SupervisionValidationRequest,
    _: AdminContext = Depends(require_capability(SUPERVISION_READ)),
    service: SupervisionService = Depends(get_supervision_service),
):
    """Check a relationship against the stored ones without writing anything"""
    return service.validate(data)


@router.get("/{relationship_id}", response_model=SupervisionRelationshipResponse)
async def get_relationship(
    relationship_id: str,
    _: AdminContext = Depends(require_capability(SUPERVISION_READ)),
    service: SupervisionService = Depends(get_supervision_service),
):
    """Get a specific supervision relationship"""
    return service.get_relationship(relationship_id)


@router.put("/{relationship_id}", response_model=SupervisionRelationshipResponse)
async def update_relationship(
    relationship_id: str,
    data: SupervisionRelationshipUpdate,
    request: Request,
    admin: AdminContext = Depends(require_capability(SUPERVISION_WRITE)),
    service: SupervisionService = Depends(get_supervision_service),
):
    """Update a supervision relationship"""
    return service.update_relationship(relationship_id, data, request_meta(request, admin))


@router.delete("/{relationship_id}")
async def delete_relationship(
    relationship_id: str,
    request: Request,
    admin: AdminContext = Depends(require_capability(SUPERVISION_WRITE)),
    service: SupervisionService = Depends(get_supervision_service),
):
    """Delete a supervision relationship"""
    service.delete_relationship(relationship_id, request_meta(request, admin))
    return {"success": True, "message": "Supervision relationship deleted"}


__all__ = ["router"]
