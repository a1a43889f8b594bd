"""Option documents and client response parsing for public-key ceremonies.

Verification is limited to the client data: the challenge echoed by the
authenticator and the origin it reports. Attestation objects and assertion
signatures are carried through untouched, so ``Fido2Server`` is not used.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from fido2.utils import websafe_decode, websafe_encode
from fido2.webauthn import (
    AttestationConveyancePreference,
    AuthenticatorAttachment,
    CollectedClientData,
    PublicKeyCredentialParameters,
    PublicKeyCredentialRpEntity,
    PublicKeyCredentialType,
    PublicKeyCredentialUserEntity,
    UserVerificationRequirement,
)

from .constants import (
    ALLOWED_TRANSPORTS,
    CEREMONY_TIMEOUT_MS,
    PUBLIC_KEY_ALGORITHMS,
)
from .crypto import constant_time_equals
from .errors import ChallengeMismatch, MalformedCredential, OriginMismatch


@dataclass
class RelyingParty:
    name: str
    id: str
    origin: str

    @property
    def entity(self) -> PublicKeyCredentialRpEntity:
        return PublicKeyCredentialRpEntity(name=self.name, id=self.id)


@dataclass
class ClientResponse:
    """The parts of a ``PublicKeyCredential`` this package looks at."""

    credential_id: str
    challenge: bytes
    origin: str
    attestation_object: Optional[str] = None

    @staticmethod
    def from_dict(credential: Any) -> "ClientResponse":
        if not isinstance(credential, dict):
            raise MalformedCredential("Credential must be an object")
        credential_id = credential.get("id")
        response = credential.get("response")
        if not isinstance(credential_id, str) or not credential_id:
            raise MalformedCredential("Credential id is missing")
        if not isinstance(response, dict):
            raise MalformedCredential("Credential response is missing")
        encoded = response.get("clientDataJSON")
        if not isinstance(encoded, str) or not encoded:
            raise MalformedCredential("clientDataJSON is missing")
        try:
            client_data = CollectedClientData(websafe_decode(encoded))
        except (ValueError, KeyError, TypeError) as exc:
            raise MalformedCredential("clientDataJSON lacks type, challenge or origin") from exc
        if not isinstance(client_data.origin, str):
            raise MalformedCredential("clientDataJSON origin must be a string")
        attestation = response.get("attestationObject")
        return ClientResponse(
            credential_id=credential_id,
            challenge=client_data.challenge,
            origin=client_data.origin,
            attestation_object=attestation if isinstance(attestation, str) else None,
        )


def check_client_data(response: ClientResponse, expected_challenge: bytes, expected_origin: str) -> None:
    """Raise unless the response echoes our challenge from the expected origin."""

    if not constant_time_equals(response.challenge, expected_challenge):
        raise ChallengeMismatch("Challenge mismatch")
    if response.origin != expected_origin:
        raise OriginMismatch("Origin mismatch")


def registration_options(
    relying_party: RelyingParty,
    challenge: bytes,
    user_handle: bytes,
    email: str,
    name: str,
) -> Dict[str, Any]:
    rp = relying_party.entity
    user = PublicKeyCredentialUserEntity(name=email, id=user_handle, display_name=name)
    params = [
        PublicKeyCredentialParameters(type=PublicKeyCredentialType.PUBLIC_KEY, alg=algorithm)
        for algorithm in PUBLIC_KEY_ALGORITHMS
    ]
    return {
        "challenge": websafe_encode(challenge),
        "rp": {"name": rp.name, "id": rp.id},
        "user": {
            "id": websafe_encode(user.id),
            "name": user.name,
            "displayName": user.display_name,
        },
        "pubKeyCredParams": [{"alg": param.alg, "type": param.type.value} for param in params],
        "authenticatorSelection": {
            "authenticatorAttachment": AuthenticatorAttachment.PLATFORM.value,
            "userVerification": UserVerificationRequirement.REQUIRED.value,
            "requireResidentKey": False,
        },
        "timeout": CEREMONY_TIMEOUT_MS,
        "attestation": AttestationConveyancePreference.DIRECT.value,
    }


def authentication_options(
    relying_party: RelyingParty,
    challenge: bytes,
    allow_credentials: Iterable[str],
) -> Dict[str, Any]:
    return {
        "challenge": websafe_encode(challenge),
        "timeout": CEREMONY_TIMEOUT_MS,
        "rpId": relying_party.entity.id,
        "allowCredentials": [
            {
                "id": credential_id,
                "type": PublicKeyCredentialType.PUBLIC_KEY.value,
                "transports": list(ALLOWED_TRANSPORTS),
            }
            for credential_id in allow_credentials
        ],
        "userVerification": UserVerificationRequirement.REQUIRED.value,
    }


def build_client_data(
    challenge: bytes,
    origin: str,
    ceremony_type: str = CollectedClientData.TYPE.CREATE.value,
) -> str:
    """Encode a ``clientDataJSON`` blob the way a browser would."""

    client_data = CollectedClientData.create(type=ceremony_type, challenge=challenge, origin=origin)
    return websafe_encode(bytes(client_data))


__all__ = [
    "ClientResponse",
    "RelyingParty",
    "authentication_options",
    "build_client_data",
    "check_client_data",
    "registration_options",
]
