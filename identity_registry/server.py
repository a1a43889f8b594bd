"""FastAPI surface for the identity registry and biometric ceremonies."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from pydantic import BaseModel

from .ceremony import CeremonyProtocol
from .challenges import ChallengeLedger, ChallengeSweeper
from .config import Settings, get_settings
from .constants import MAX_PAGE_SIZE
from .crypto import hash_national_id
from .errors import (
    CeremonyRejected,
    Conflict,
    Expired,
    IdentityError,
    InvalidInput,
    InvalidToken,
    NotFound,
)
from .logging_config import configure_logging
from .registry import IdentityRecord, RegistryLedger
from .session import SessionClaims, SessionIssuer
from .store import CredentialStore
from .validation import validate_address, validate_email, validate_national_id, validate_required


@dataclass
class Services:
    """Component instances owned by one application."""

    settings: Settings
    registry: RegistryLedger
    credentials: CredentialStore
    challenges: ChallengeLedger
    sessions: SessionIssuer
    ceremonies: CeremonyProtocol
    sweeper: ChallengeSweeper

    @classmethod
    def build(cls, settings: Settings, clock: Callable[[], float] = time.time) -> "Services":
        registry = RegistryLedger(settings.registry_path, clock=clock)
        credentials = CredentialStore(settings.credential_store_path)
        challenges = ChallengeLedger(ttl=settings.challenge_ttl, clock=clock)
        sessions = SessionIssuer(settings.session_secret, ttl=settings.session_ttl, clock=clock)
        ceremonies = CeremonyProtocol(
            settings.relying_party,
            credentials,
            challenges,
            sessions,
            clock=clock,
        )
        return cls(
            settings=settings,
            registry=registry,
            credentials=credentials,
            challenges=challenges,
            sessions=sessions,
            ceremonies=ceremonies,
            sweeper=ChallengeSweeper(challenges, settings.sweep_interval),
        )


class RegisterIdentityRequest(BaseModel):
    name: str = ""
    email: str = ""
    id_number: str = ""
    owner_address: str = ""


class IdentityResponse(BaseModel):
    name: str
    email: str
    id_hash: str
    owner_address: str
    registered_at: float
    active: bool


class RegisterIdentityResponse(BaseModel):
    record_id: int
    user_count: int
    identity: IdentityResponse


class UsersResponse(BaseModel):
    total: int
    showing: int
    users: List[IdentityResponse]


class VerifyIdRequest(BaseModel):
    id_number: str = ""
    owner_address: str = ""


class VerifyIdResponse(BaseModel):
    is_valid: bool


class DeactivateRequest(BaseModel):
    owner_address: str = ""


class BeginRegistrationRequest(BaseModel):
    email: str = ""
    name: str = ""


class EmailRequest(BaseModel):
    email: str = ""


class CeremonyStartResponse(BaseModel):
    challenge_key: str
    options: Dict[str, Any]


class CompleteCeremonyRequest(BaseModel):
    credential: Optional[Dict[str, Any]] = None
    challenge_key: str = ""


class CompleteRegistrationResponse(BaseModel):
    success: bool
    credential_id: str


class UserResponse(BaseModel):
    email: str
    name: str


class LoginCompleteResponse(BaseModel):
    token: str
    user: UserResponse


class CheckCredentialsResponse(BaseModel):
    has_credentials: bool


class MeResponse(BaseModel):
    email: str
    name: str
    authenticated_at: float
    auth_method: str
    expires_at: float


class LogoutResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    registered_users: int
    pending_challenges: int


def _http_error(exc: IdentityError, rejected_status: int = 400) -> HTTPException:
    if isinstance(exc, InvalidInput):
        status = 400
    elif isinstance(exc, Conflict):
        status = 409
    elif isinstance(exc, NotFound):
        status = 404
    elif isinstance(exc, Expired):
        status = 410
    elif isinstance(exc, CeremonyRejected):
        status = rejected_status
    elif isinstance(exc, InvalidToken):
        status = 403
    else:  # pragma: no cover - every subclass is mapped above
        status = 500
    return HTTPException(status_code=status, detail=str(exc))


def _identity(record: IdentityRecord) -> IdentityResponse:
    return IdentityResponse(**record.to_dict())


def create_app(
    settings: Optional[Settings] = None,
    *,
    clock: Callable[[], float] = time.time,
    configure_logs: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(settings.log_level, json_format=settings.log_json)
    services = Services.build(settings, clock)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        services.sweeper.start()
        try:
            yield
        finally:
            services.sweeper.stop(timeout=1.0)

    app = FastAPI(
        title="Identity Registry",
        description="On-chain identity registry with biometric login",
        lifespan=lifespan,
    )
    app.state.services = services

    def current_claims(authorization: Optional[str] = Header(default=None)) -> SessionClaims:
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise HTTPException(status_code=401, detail="Access token required")
        try:
            return services.sessions.verify(token.strip())
        except (InvalidToken, Expired) as exc:
            raise HTTPException(status_code=403, detail="Invalid or expired token") from exc

    @app.post("/api/blockchain/register", response_model=RegisterIdentityResponse)
    def register_identity(request: RegisterIdentityRequest) -> RegisterIdentityResponse:
        try:
            name = validate_required(request.name, "name")
            email = validate_email(request.email)
            id_number = validate_national_id(request.id_number)
            owner_address = validate_address(request.owner_address)
            record_id = services.registry.register(name, email, hash_national_id(id_number), owner_address)
            record = services.registry.record_at(record_id)
        except IdentityError as exc:
            raise _http_error(exc) from exc
        return RegisterIdentityResponse(
            record_id=record_id,
            user_count=services.registry.count_active(),
            identity=_identity(record),
        )

    @app.get("/api/blockchain/user/{address}", response_model=IdentityResponse)
    def get_identity(address: str) -> IdentityResponse:
        try:
            return _identity(services.registry.get(validate_address(address, "address")))
        except IdentityError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/blockchain/users", response_model=UsersResponse)
    def list_identities(
        offset: int = Query(default=0, ge=0),
        limit: int = Query(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    ) -> UsersResponse:
        records = services.registry.list_active(offset, limit)
        return UsersResponse(
            total=services.registry.count_active(),
            showing=len(records),
            users=[_identity(record) for record in records],
        )

    @app.post("/api/blockchain/verify-id", response_model=VerifyIdResponse)
    def verify_id(request: VerifyIdRequest) -> VerifyIdResponse:
        try:
            id_number = validate_national_id(request.id_number)
            owner_address = validate_address(request.owner_address)
            return VerifyIdResponse(is_valid=services.registry.verify_id(owner_address, id_number))
        except IdentityError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/blockchain/deactivate", response_model=IdentityResponse)
    def deactivate_identity(request: DeactivateRequest) -> IdentityResponse:
        try:
            return _identity(services.registry.deactivate(validate_address(request.owner_address)))
        except IdentityError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/auth/register/begin", response_model=CeremonyStartResponse)
    def begin_registration(request: BeginRegistrationRequest) -> CeremonyStartResponse:
        try:
            start = services.ceremonies.begin_registration(request.email, request.name)
        except IdentityError as exc:
            raise _http_error(exc) from exc
        return CeremonyStartResponse(challenge_key=start.challenge_key, options=start.options)

    @app.post("/api/auth/register/complete", response_model=CompleteRegistrationResponse)
    def complete_registration(request: CompleteCeremonyRequest) -> CompleteRegistrationResponse:
        try:
            record = services.ceremonies.complete_registration(request.credential, request.challenge_key)
        except IdentityError as exc:
            raise _http_error(exc) from exc
        return CompleteRegistrationResponse(success=True, credential_id=record.credential_id)

    @app.post("/api/auth/login/begin", response_model=CeremonyStartResponse)
    def begin_authentication(request: EmailRequest) -> CeremonyStartResponse:
        try:
            start = services.ceremonies.begin_authentication(request.email)
        except IdentityError as exc:
            raise _http_error(exc) from exc
        return CeremonyStartResponse(challenge_key=start.challenge_key, options=start.options)

    @app.post("/api/auth/login/complete", response_model=LoginCompleteResponse)
    def complete_authentication(request: CompleteCeremonyRequest) -> LoginCompleteResponse:
        try:
            result = services.ceremonies.complete_authentication(request.credential, request.challenge_key)
        except IdentityError as exc:
            raise _http_error(exc, rejected_status=401) from exc
        return LoginCompleteResponse(
            token=result.token,
            user=UserResponse(email=result.claims.email, name=result.claims.name),
        )

    @app.post("/api/auth/check-credentials", response_model=CheckCredentialsResponse)
    def check_credentials(request: EmailRequest) -> CheckCredentialsResponse:
        try:
            return CheckCredentialsResponse(has_credentials=services.ceremonies.has_credential(request.email))
        except IdentityError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/auth/me", response_model=MeResponse)
    def me(claims: SessionClaims = Depends(current_claims)) -> MeResponse:
        return MeResponse(
            email=claims.email,
            name=claims.name,
            authenticated_at=claims.issued_at,
            auth_method=claims.auth_method,
            expires_at=claims.expires_at,
        )

    @app.post("/api/auth/logout", response_model=LogoutResponse)
    def logout(claims: SessionClaims = Depends(current_claims)) -> LogoutResponse:
        # Tokens are stateless; the client discards its copy.
        return LogoutResponse(success=True, message="Logged out successfully")

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            registered_users=services.registry.count_active(),
            pending_challenges=len(services.challenges),
        )

    return app


__all__ = ["Services", "create_app"]
