"""Registration and authentication ceremonies.

Each ceremony runs in two phases. ``begin_*`` validates the request and
issues a challenge; ``complete_*`` consumes that challenge before looking at
the client's response, so every outcome of a complete call, success or
rejection, leaves the challenge spent.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict

from .challenges import ChallengeLedger
from .constants import AUTH_METHOD, AUTHENTICATION, REGISTRATION, USER_HANDLE_BYTES
from .errors import CeremonyRejected, CredentialIdMismatch, DuplicateCredential, InvalidInput, NotFound
from .logging_config import audit_log
from .session import SessionClaims, SessionIssuer
from .store import CredentialRecord, CredentialStore
from .validation import validate_email, validate_required
from .webauthn import (
    ClientResponse,
    RelyingParty,
    authentication_options,
    check_client_data,
    registration_options,
)

logger = logging.getLogger(__name__)


@dataclass
class CeremonyStart:
    challenge_key: str
    options: Dict[str, Any]


@dataclass
class AuthenticationResult:
    token: str
    claims: SessionClaims
    counter: int


class CeremonyProtocol:
    """Drive both ceremony kinds against the injected stores."""

    def __init__(
        self,
        relying_party: RelyingParty,
        credentials: CredentialStore,
        challenges: ChallengeLedger,
        sessions: SessionIssuer,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.relying_party = relying_party
        self.credentials = credentials
        self.challenges = challenges
        self.sessions = sessions
        self._clock = clock

    def begin_registration(self, email: str, name: str) -> CeremonyStart:
        email = validate_email(email)
        name = validate_required(name, "name")
        if self.credentials.exists(email):
            audit_log.ceremony_rejected(REGISTRATION, "duplicate credential", email)
            raise DuplicateCredential(f"{email} already has a biometric credential")

        challenge_key, challenge = self.challenges.issue(email, name, kind=REGISTRATION)
        options = registration_options(
            self.relying_party,
            challenge,
            secrets.token_bytes(USER_HANDLE_BYTES),
            email,
            name,
        )
        audit_log.ceremony_started(REGISTRATION, email)
        return CeremonyStart(challenge_key=challenge_key, options=options)

    def complete_registration(self, credential: Any, challenge_key: str) -> CredentialRecord:
        pending = self.challenges.consume(_require_key(challenge_key))
        if pending.kind != REGISTRATION:
            raise NotFound("Challenge does not belong to a registration ceremony")

        try:
            response = ClientResponse.from_dict(credential)
            check_client_data(response, pending.challenge, self.relying_party.origin)
        except CeremonyRejected as exc:
            audit_log.ceremony_rejected(REGISTRATION, str(exc), pending.email)
            raise

        record = CredentialRecord(
            credential_id=response.credential_id,
            public_key=response.attestation_object or "",
            counter=0,
            email=pending.email,
            name=pending.name or "",
            registered_at=self._clock(),
        )
        self.credentials.add(pending.email, record)
        audit_log.ceremony_completed(REGISTRATION, pending.email, record.credential_id)
        return record

    def begin_authentication(self, email: str) -> CeremonyStart:
        email = validate_email(email)
        # Raises NotFound before any challenge exists.
        stored = self.credentials.get(email)

        challenge_key, challenge = self.challenges.issue(email, kind=AUTHENTICATION)
        options = authentication_options(self.relying_party, challenge, [stored.credential_id])
        audit_log.ceremony_started(AUTHENTICATION, email)
        return CeremonyStart(challenge_key=challenge_key, options=options)

    def complete_authentication(self, credential: Any, challenge_key: str) -> AuthenticationResult:
        pending = self.challenges.consume(_require_key(challenge_key))
        if pending.kind != AUTHENTICATION:
            raise NotFound("Challenge does not belong to an authentication ceremony")
        stored = self.credentials.get(pending.email)

        try:
            response = ClientResponse.from_dict(credential)
            if response.credential_id != stored.credential_id:
                raise CredentialIdMismatch("Credential ID mismatch")
            check_client_data(response, pending.challenge, self.relying_party.origin)
        except CeremonyRejected as exc:
            audit_log.ceremony_rejected(AUTHENTICATION, str(exc), pending.email)
            raise

        # The server-held counter is authoritative; anything the client
        # asserts is ignored.
        updated = self.credentials.increment_counter(pending.email)
        claims = self.sessions.expiring(
            SessionClaims(
                email=pending.email,
                name=stored.name,
                issued_at=self._clock(),
                auth_method=AUTH_METHOD,
            )
        )
        token = self.sessions.issue(claims)
        audit_log.ceremony_completed(AUTHENTICATION, pending.email, stored.credential_id)
        logger.debug("Signature counter for %s advanced to %d", pending.email, updated.counter)
        return AuthenticationResult(token=token, claims=claims, counter=updated.counter)

    def has_credential(self, email: str) -> bool:
        return self.credentials.exists(validate_email(email))


def _require_key(challenge_key: Any) -> str:
    if not isinstance(challenge_key, str) or not challenge_key:
        raise InvalidInput("challenge_key", "is required")
    return challenge_key


__all__ = ["AuthenticationResult", "CeremonyProtocol", "CeremonyStart"]
