"""
Outbound invite notifications.

E-mail delivery is an external collaborator outside this service. Delivery
is best-effort: callers never fail an invite because the e-mail could not be
sent. Outside production the invite URL is logged so a developer can paste it
into a browser; in production no transport is configured and invites are
shared through the returned invite URL.
"""

from __future__ import annotations

import structlog

from app.core.config import get_settings

log = structlog.get_logger()


async def send_invite_email(email: str, invite_url: str, studio_name: str) -> bool:
    """Send an invitation e-mail. Returns False if nothing was delivered."""
    settings = get_settings()
    if settings.environment == "production":
        log.warning("invite.email_not_sent", email=email, studio=studio_name)
        return False
    log.info(
        "invite.email_logged",
        email=email,
        studio=studio_name,
        invite_url=invite_url,
    )
    return True
