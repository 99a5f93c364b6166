# SQLModel definitions, imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .studio import Studio  # noqa: F401
from .membership import StudioMembership  # noqa: F401
from .invitation import StudioInvitation  # noqa: F401
from .invite_link import StudioInviteLink  # noqa: F401
