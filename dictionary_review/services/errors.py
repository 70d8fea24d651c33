from typing import Literal

ErrorKind = Literal[
    "not_found",
    "permission_denied",
    "self_vote",
    "already_voted",
    "invalid_state_for_operation",
    "validation_error",
    "apply_conflict",
    "already_applied",
    "conflict",
    "unavailable",
]


class ModerationError(Exception):
    """Base error for moderation operations."""

    kind: ErrorKind = "conflict"


class NotFoundError(ModerationError):
    """Raised when the requested word, correction or report does not exist."""

    kind: ErrorKind = "not_found"


class PermissionDeniedError(ModerationError):
    """Raised when a non-admin calls a privileged operation."""

    kind: ErrorKind = "permission_denied"


class SelfVoteError(ModerationError):
    """Raised when the owner of an entity tries to vote on it."""

    kind: ErrorKind = "self_vote"


class AlreadyVotedError(ModerationError):
    """Raised when a reviewer already has an entry in the vote ledger."""

    kind: ErrorKind = "already_voted"


class InvalidStateError(ModerationError):
    """Raised when an operation is not legal from the entity's current status."""

    kind: ErrorKind = "invalid_state_for_operation"


class ValidationError(ModerationError):
    """Raised when a request is missing required fields."""

    kind: ErrorKind = "validation_error"


class ApplyConflictError(ModerationError):
    """Raised when a correction's snapshot no longer matches the live word."""

    kind: ErrorKind = "apply_conflict"


class AlreadyAppliedError(ModerationError):
    """Raised when a correction has already been applied."""

    kind: ErrorKind = "already_applied"


class ConflictError(ModerationError):
    """Raised when optimistic transaction retries are exhausted."""

    kind: ErrorKind = "conflict"


class RepositoryUnavailableError(ModerationError):
    """Raised when the database is unavailable or not configured."""

    kind: ErrorKind = "unavailable"
