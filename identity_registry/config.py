"""
Process-wide configuration.

Values come from the environment once, at startup, and are immutable for
the lifetime of the process.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from .constants import CHALLENGE_TTL_SECONDS, SESSION_TTL_SECONDS, SWEEP_INTERVAL_SECONDS
from .errors import ConfigurationError
from .webauthn import RelyingParty


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive")
    return value


def _bool_setting(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    session_secret: str
    rp_name: str = "Decentralized Identity System"
    rp_id: str = "localhost"
    origin: str = "http://localhost:3000"
    challenge_ttl: int = CHALLENGE_TTL_SECONDS
    session_ttl: int = SESSION_TTL_SECONDS
    sweep_interval: int = SWEEP_INTERVAL_SECONDS
    registry_path: Optional[str] = "data/registry.json"
    credential_store_path: Optional[str] = "data/credentials.json"
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def relying_party(self) -> RelyingParty:
        return RelyingParty(name=self.rp_name, id=self.rp_id, origin=self.origin)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        secret = env.get("SESSION_SECRET") or env.get("JWT_SECRET")
        if not secret:
            raise ConfigurationError("SESSION_SECRET (or JWT_SECRET) must be set")
        return cls(
            session_secret=secret,
            rp_name=env.get("RP_NAME", cls.rp_name),
            rp_id=env.get("RP_ID", cls.rp_id),
            origin=env.get("ORIGIN", cls.origin),
            challenge_ttl=_int_setting(env, "CHALLENGE_TTL_SECONDS", CHALLENGE_TTL_SECONDS),
            session_ttl=_int_setting(env, "SESSION_TTL_SECONDS", SESSION_TTL_SECONDS),
            sweep_interval=_int_setting(env, "SWEEP_INTERVAL_SECONDS", SWEEP_INTERVAL_SECONDS),
            registry_path=env.get("REGISTRY_PATH", cls.registry_path),
            credential_store_path=env.get("CREDENTIAL_STORE_PATH", cls.credential_store_path),
            log_level=env.get("LOG_LEVEL", cls.log_level),
            log_json=_bool_setting(env, "LOG_JSON", True),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the environment on first use and cache them."""
    return Settings.from_env()


__all__ = ["Settings", "get_settings"]
