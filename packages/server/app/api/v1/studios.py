"""
Studio & access API endpoints.

GET    /api/v1/access                 — Resolve the caller's current studio
GET    /api/v1/studios                — List the caller's studios
POST   /api/v1/studios                — Create a studio (caller becomes owner)
POST   /api/v1/studios/switch         — Switch the current studio
POST   /api/v1/studios/auto-select    — Pick a current studio automatically
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity, get_current_identity, require_identity
from app.core.database import get_session
from app.core.errors import unwrap
from app.core.studio_ref import StudioRef, get_studio_ref
from app.services import access as access_service
from app.services import studios as studio_service
from studiodesk_shared.schemas.studios import (
    AccessResponse,
    StudioCreateRequest,
    StudioListResponse,
    StudioResponse,
    SwitchStudioRequest,
    SwitchStudioResponse,
)

router = APIRouter()


@router.get("/access", response_model=AccessResponse, tags=["Access"])
async def resolve_access(
    response: Response,
    identity: Optional[Identity] = Depends(get_current_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Decide where the caller lands: a studio, the picker, or onboarding."""
    resolution = unwrap(
        await access_service.resolve_studio_access(identity, studio_ref, session)
    )
    studio_ref.apply(response)
    return resolution.to_response()


@router.get("/studios", response_model=StudioListResponse, tags=["Studios"])
async def list_studios(
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """List studios the caller is an active member of."""
    items = await studio_service.list_user_studios(identity, studio_ref, session)
    return StudioListResponse(data=items)


@router.post("/studios", response_model=StudioResponse, status_code=201, tags=["Studios"])
async def create_studio(
    body: StudioCreateRequest,
    response: Response,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Create a studio owned by the caller and make it current."""
    studio = unwrap(await studio_service.create_studio(body, identity, studio_ref, session))
    studio_ref.apply(response)
    return StudioResponse.model_validate(studio)


@router.post("/studios/switch", response_model=SwitchStudioResponse, tags=["Studios"])
async def switch_studio(
    body: SwitchStudioRequest,
    response: Response,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Switch to another studio the caller belongs to."""
    studio_id = unwrap(
        await studio_service.switch_studio(body.studio_id, identity, studio_ref, session)
    )
    studio_ref.apply(response)
    return SwitchStudioResponse(studio_id=studio_id)


@router.post("/studios/auto-select", response_model=SwitchStudioResponse, tags=["Studios"])
async def auto_select_studio(
    response: Response,
    identity: Identity = Depends(require_identity),
    studio_ref: StudioRef = Depends(get_studio_ref),
    session: AsyncSession = Depends(get_session),
):
    """Select a studio automatically (owner > admin > member)."""
    studio_id = unwrap(await studio_service.auto_select_studio(identity, studio_ref, session))
    studio_ref.apply(response)
    return SwitchStudioResponse(studio_id=studio_id)
