"""Signed, time-bounded session tokens.

Tokens use the compact ``header.payload.signature`` layout with an
HMAC-SHA256 signature. There is no server-side session table: a token is
valid exactly while its signature checks out and ``exp`` has not passed,
so logging out cannot revoke one early.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict

from fido2.utils import websafe_decode, websafe_encode

from .constants import AUTH_METHOD, SESSION_TTL_SECONDS, TOKEN_AUDIENCE, TOKEN_ISSUER
from .crypto import constant_time_equals, hmac_sha256
from .errors import ConfigurationError, Expired, InvalidToken
from .logging_config import audit_log

_HEADER = {"alg": "HS256", "typ": "JWT"}


@dataclass
class SessionClaims:
    email: str
    name: str
    issued_at: float
    auth_method: str = AUTH_METHOD
    expires_at: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sub": self.email,
            "name": self.name,
            "iat": self.issued_at,
            "exp": self.expires_at,
            "auth_method": self.auth_method,
            "iss": TOKEN_ISSUER,
            "aud": TOKEN_AUDIENCE,
        }

    @staticmethod
    def from_payload(payload: Dict[str, Any]) -> "SessionClaims":
        return SessionClaims(
            email=str(payload["sub"]),
            name=str(payload.get("name", "")),
            issued_at=float(payload["iat"]),
            auth_method=str(payload.get("auth_method", AUTH_METHOD)),
            expires_at=float(payload["exp"]),
        )


def _encode_segment(data: Dict[str, Any]) -> str:
    return websafe_encode(json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8"))


class SessionIssuer:
    """Mint and verify session tokens with a process-wide secret."""

    def __init__(
        self,
        secret: str | bytes,
        *,
        ttl: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ConfigurationError("Session signing secret must not be empty")
        self._secret = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        self.ttl = ttl
        self._clock = clock

    def _sign(self, signing_input: str) -> str:
        return websafe_encode(hmac_sha256(self._secret, signing_input.encode("ascii")))

    def expiring(self, claims: SessionClaims) -> SessionClaims:
        """Return a copy of ``claims`` stamped with this issuer's expiry."""
        return replace(claims, expires_at=claims.issued_at + self.ttl)

    def issue(self, claims: SessionClaims) -> str:
        claims = self.expiring(claims)
        signing_input = f"{_encode_segment(_HEADER)}.{_encode_segment(claims.to_payload())}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def verify(self, token: str) -> SessionClaims:
        """Return the claims of ``token`` or raise ``InvalidToken``/``Expired``."""

        if not isinstance(token, str) or token.count(".") != 2 or not token.isascii():
            audit_log.token_rejected("malformed")
            raise InvalidToken("Malformed token")
        header_segment, payload_segment, signature = token.split(".")
        expected = self._sign(f"{header_segment}.{payload_segment}")
        if not constant_time_equals(signature.encode("utf-8"), expected.encode("ascii")):
            audit_log.token_rejected("bad signature")
            raise InvalidToken("Invalid token signature")

        try:
            header = json.loads(websafe_decode(header_segment))
            payload = json.loads(websafe_decode(payload_segment))
            claims = SessionClaims.from_payload(payload)
        except (ValueError, KeyError, TypeError) as exc:
            audit_log.token_rejected("malformed")
            raise InvalidToken("Malformed token") from exc
        if header != _HEADER:
            audit_log.token_rejected("unsupported header")
            raise InvalidToken("Unsupported token header")
        if payload.get("iss") != TOKEN_ISSUER or payload.get("aud") != TOKEN_AUDIENCE:
            audit_log.token_rejected("wrong issuer or audience")
            raise InvalidToken("Token issuer or audience mismatch")

        if self._clock() > claims.expires_at:
            audit_log.token_rejected("expired")
            raise Expired("Session token expired")
        return claims


__all__ = ["SessionClaims", "SessionIssuer"]
