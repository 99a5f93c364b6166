"""
Access resolution: decides, on app entry, which studio the caller works in.

Order of precedence:
1. an open invitation addressed to the caller's e-mail (auto-accepted when
   there is exactly one; several send the caller to a chooser);
2. the current-studio reference, if it still names an active membership;
3. the caller's only membership, or a picker when there are several.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity, normalize_email
from app.core.database import set_rls_context
from app.core.errors import Err, Ok, Result
from app.core.metrics import metrics
from app.core.studio_ref import StudioRef
from app.services.invitations import accept_invitation
from app.services.studio_context import resolve_studio_context
from app.stores import invitations as invitation_store
from app.stores import memberships as membership_store
from studiodesk_shared.schemas.common import ErrorCode
from studiodesk_shared.schemas.studios import (
    AccessResponse,
    AccessState,
    PendingInviteItem,
    StudioListItem,
    StudioSummary,
)

log = structlog.get_logger()


@dataclass(frozen=True)
class AccessResolution:
    state: AccessState
    studio_id: Optional[uuid.UUID] = None
    studios: list[StudioListItem] = field(default_factory=list)
    invites: list[PendingInviteItem] = field(default_factory=list)
    joined_via_invite: bool = False

    def to_response(self) -> AccessResponse:
        return AccessResponse(
            state=self.state,
            studio_id=self.studio_id,
            studios=self.studios,
            invites=self.invites,
            joined_via_invite=self.joined_via_invite,
        )


def _resolved(resolution: AccessResolution, identity: Identity) -> Ok[AccessResolution]:
    metrics.inc("access_resolutions_total", state=resolution.state.value)
    log.info(
        "access.resolved",
        user_id=str(identity.id),
        state=resolution.state.value,
        studio_id=str(resolution.studio_id) if resolution.studio_id else None,
    )
    return Ok(resolution)


async def resolve_studio_access(
    identity: Optional[Identity],
    studio_ref: StudioRef,
    session: AsyncSession,
) -> Result[AccessResolution]:
    """Resolve the caller's studio, accepting a sole pending invitation on the way.

    Writes the chosen studio to ``studio_ref`` whenever it changes.
    """
    if identity is None:
        return Err(ErrorCode.AUTHENTICATION_REQUIRED, "You must be signed in.")

    pending = await invitation_store.find_pending_invitations_by_email(
        session, normalize_email(identity.email)
    )

    if len(pending) > 1:
        return _resolved(
            AccessResolution(
                state=AccessState.AMBIGUOUS_INVITES,
                invites=[
                    PendingInviteItem(
                        id=inv.id,
                        studio=StudioSummary.model_validate(studio),
                        role=inv.role,
                        expires_at=inv.expires_at,
                    )
                    for inv, studio in pending
                ],
            ),
            identity,
        )

    if len(pending) == 1:
        invitation, _studio = pending[0]
        accepted = await accept_invitation(invitation, identity.id, session)
        if isinstance(accepted, Err):
            return accepted
        studio_id = accepted.value.studio_id
        studio_ref.set(studio_id)
        await set_rls_context(session, user_id=identity.id, studio_id=studio_id)
        return _resolved(
            AccessResolution(state=AccessState.READY, studio_id=studio_id, joined_via_invite=True),
            identity,
        )

    rows = await membership_store.list_active_memberships(session, identity.id)
    memberships = [m for m, _ in rows]
    context = resolve_studio_context(studio_ref.get(), memberships)

    if context.studio_id is None:
        return _resolved(AccessResolution(state=AccessState.NO_STUDIOS), identity)

    if not context.needs_auto_select:
        await set_rls_context(session, user_id=identity.id, studio_id=context.studio_id)
        return _resolved(
            AccessResolution(state=AccessState.READY, studio_id=context.studio_id), identity
        )

    if len(memberships) == 1:
        studio_ref.set(context.studio_id)
        await set_rls_context(session, user_id=identity.id, studio_id=context.studio_id)
        return _resolved(
            AccessResolution(state=AccessState.READY, studio_id=context.studio_id), identity
        )

    return _resolved(
        AccessResolution(
            state=AccessState.NEEDS_PICKER,
            studios=[
                StudioListItem(id=studio.id, name=studio.name, slug=studio.slug, role=m.role)
                for m, studio in rows
            ],
        ),
        identity,
    )
