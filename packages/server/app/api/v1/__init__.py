"""
API v1 Router

Team endpoints act on the current studio carried in the sd_current_studio cookie.
"""

from fastapi import APIRouter
from studiodesk_shared.schemas.common import ErrorResponse

from . import invites, studios, team

router = APIRouter(
    responses={
        status: {"model": ErrorResponse}
        for status in (401, 403, 404, 409, 410, 500)
    }
)

router.include_router(studios.router)
router.include_router(team.router, prefix="/team", tags=["Team"])
router.include_router(invites.router, prefix="/invites", tags=["Invites"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/access",
            "/studios",
            "/team",
            "/invites",
        ],
    }
