"""Pick the current studio from a stored reference and the caller's memberships."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


class HasStudioId(Protocol):
    studio_id: uuid.UUID


@dataclass(frozen=True)
class StudioContextResolution:
    studio_id: Optional[uuid.UUID]
    needs_auto_select: bool


def resolve_studio_context(
    current_ref: Optional[uuid.UUID],
    memberships: Sequence[HasStudioId],
) -> StudioContextResolution:
    """Keep ``current_ref`` if it names one of ``memberships``, else fall back.

    The fallback is the first membership as given; callers order them.
    Nothing is persisted here: ``needs_auto_select`` tells the caller to
    write the chosen studio back to the reference.
    """
    if not memberships:
        return StudioContextResolution(studio_id=None, needs_auto_select=False)
    if current_ref is not None and any(m.studio_id == current_ref for m in memberships):
        return StudioContextResolution(studio_id=current_ref, needs_auto_select=False)
    return StudioContextResolution(studio_id=memberships[0].studio_id, needs_auto_select=True)
