from enum import Enum

from pydantic import BaseModel


class MembershipRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    REMOVED = "removed"


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"


# Roles that may manage the team (invites, links, role changes)
PRIVILEGED_ROLES: frozenset[MembershipRole] = frozenset(
    {MembershipRole.OWNER, MembershipRole.ADMIN}
)

# Roles an invitation may carry; owner is only ever granted by studio creation
INVITABLE_ROLES: frozenset[MembershipRole] = frozenset(
    {MembershipRole.ADMIN, MembershipRole.MEMBER}
)


class ErrorCode(str, Enum):
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    MEMBERSHIP_NOT_FOUND = "MEMBERSHIP_NOT_FOUND"
    CANNOT_CHANGE_OWNER = "CANNOT_CHANGE_OWNER"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    NO_STUDIO = "NO_STUDIO"
    STUDIO_NOT_FOUND = "STUDIO_NOT_FOUND"
    INVITE_NOT_FOUND = "INVITE_NOT_FOUND"
    INVITE_EXPIRED = "INVITE_EXPIRED"
    INVALID_INVITE_STATE = "INVALID_INVITE_STATE"
    EMAIL_MISMATCH = "EMAIL_MISMATCH"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    CANNOT_REMOVE_SELF = "CANNOT_REMOVE_SELF"
    CANNOT_REMOVE_OWNER = "CANNOT_REMOVE_OWNER"
    CONFLICT = "CONFLICT"


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    status: int


class ErrorResponse(BaseModel):
    error: ErrorBody

