"""Exception hierarchy for the registry, credential and ceremony components."""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(IdentityError):
    """Startup configuration is missing or malformed."""


class InvalidInput(IdentityError):
    """A required field is missing or malformed."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFound(IdentityError):
    """The requested record or challenge does not exist."""


class Expired(IdentityError):
    """A challenge or session token is past its expiry."""


class Conflict(IdentityError):
    """The identity collides with an existing one."""


class AlreadyRegistered(Conflict):
    pass


class EmailTaken(Conflict):
    pass


class IdAlreadyUsed(Conflict):
    pass


class DuplicateCredential(Conflict):
    pass


class CeremonyRejected(IdentityError):
    """The client's ceremony response failed validation."""


class ChallengeMismatch(CeremonyRejected):
    pass


class OriginMismatch(CeremonyRejected):
    pass


class CredentialIdMismatch(CeremonyRejected):
    pass


class MalformedCredential(CeremonyRejected):
    pass


class InvalidToken(IdentityError):
    """A session token has a bad signature or structure."""


__all__ = [
    "AlreadyRegistered",
    "CeremonyRejected",
    "ChallengeMismatch",
    "ConfigurationError",
    "Conflict",
    "CredentialIdMismatch",
    "DuplicateCredential",
    "EmailTaken",
    "Expired",
    "IdAlreadyUsed",
    "IdentityError",
    "InvalidInput",
    "InvalidToken",
    "MalformedCredential",
    "NotFound",
    "OriginMismatch",
]
