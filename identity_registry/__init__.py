"""Identity registry with biometric registration and login ceremonies."""

from .ceremony import AuthenticationResult, CeremonyProtocol, CeremonyStart
from .challenges import ChallengeLedger, ChallengeSweeper, PendingChallenge
from .config import Settings, get_settings
from .crypto import hash_national_id
from .errors import (
    AlreadyRegistered,
    CeremonyRejected,
    ChallengeMismatch,
    ConfigurationError,
    Conflict,
    CredentialIdMismatch,
    DuplicateCredential,
    EmailTaken,
    Expired,
    IdAlreadyUsed,
    IdentityError,
    InvalidInput,
    InvalidToken,
    MalformedCredential,
    NotFound,
    OriginMismatch,
)
from .registry import DeactivationEvent, IdentityRecord, RegistrationEvent, RegistryLedger
from .session import SessionClaims, SessionIssuer
from .store import CredentialRecord, CredentialStore
from .webauthn import ClientResponse, RelyingParty

__all__ = [
    "AuthenticationResult",
    "CeremonyProtocol",
    "CeremonyStart",
    "ChallengeLedger",
    "ChallengeSweeper",
    "PendingChallenge",
    "Settings",
    "get_settings",
    "hash_national_id",
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
    "DeactivationEvent",
    "IdentityRecord",
    "RegistrationEvent",
    "RegistryLedger",
    "SessionClaims",
    "SessionIssuer",
    "CredentialRecord",
    "CredentialStore",
    "ClientResponse",
    "RelyingParty",
]
