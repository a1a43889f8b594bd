"""JSON-backed credential store for biometric ceremonies."""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .errors import DuplicateCredential, NotFound
from .locking import KeyedLock

logger = logging.getLogger(__name__)


class JsonDocument:
    """A single JSON document on disk, or in memory when ``path`` is None.

    Writes go to a sibling temporary file which then replaces the original,
    so a crash mid-write leaves the previous version intact.
    """

    def __init__(self, path: Optional[str], default: Callable[[], Dict[str, Any]]) -> None:
        self.path = path
        self._default = default
        self._memory: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()
        self._ensure_file()

    def _ensure_file(self) -> None:
        if self.path is None:
            self._memory = self._default()
            return
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.path):
            self.save(self._default())

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def load(self) -> Dict[str, Any]:
        with self._lock:
            if self.path is None:
                return copy.deepcopy(self._memory)
            with open(self.path, "r", encoding="utf-8") as handle:
                return json.load(handle)

    def save(self, payload: Dict[str, Any]) -> None:
        with self._lock:
            if self.path is None:
                self._memory = copy.deepcopy(payload)
                return
            directory = os.path.dirname(self.path) or "."
            fd, temp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2)
                os.replace(temp_path, self.path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise


@dataclass
class CredentialRecord:
    """Server-held reference to a client's public-key credential."""

    credential_id: str
    public_key: str
    counter: int
    email: str
    name: str
    registered_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credential_id": self.credential_id,
            "public_key": self.public_key,
            "counter": self.counter,
            "email": self.email,
            "name": self.name,
            "registered_at": self.registered_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "CredentialRecord":
        return CredentialRecord(
            credential_id=data["credential_id"],
            public_key=data.get("public_key", ""),
            counter=int(data.get("counter", 0)),
            email=data["email"],
            name=data.get("name", ""),
            registered_at=float(data.get("registered_at", 0.0)),
        )


class CredentialStore:
    """Persist at most one credential per email address."""

    def __init__(self, path: Optional[str] = None) -> None:
        self._document = JsonDocument(path, lambda: {"credentials": {}})
        self._keys = KeyedLock()

    @property
    def path(self) -> Optional[str]:
        return self._document.path

    def _write(self, email: str, record: CredentialRecord) -> None:
        with self._document.lock:
            payload = self._document.load()
            payload.setdefault("credentials", {})[email] = record.to_dict()
            self._document.save(payload)

    def put(self, email: str, record: CredentialRecord) -> None:
        """Store ``record`` for ``email``, replacing any existing one."""

        with self._keys.hold(email):
            self._write(email, record)

    def add(self, email: str, record: CredentialRecord) -> None:
        """Store ``record`` only if ``email`` has no credential yet."""

        with self._keys.hold(email):
            if self.exists(email):
                raise DuplicateCredential(f"Credential already registered for {email}")
            self._write(email, record)
        logger.info("Stored credential %s for %s", record.credential_id, email)

    def get(self, email: str) -> CredentialRecord:
        raw = self._document.load().get("credentials", {}).get(email)
        if raw is None:
            raise NotFound(f"No credential registered for {email}")
        return CredentialRecord.from_dict(raw)

    def exists(self, email: str) -> bool:
        return email in self._document.load().get("credentials", {})

    def update_counter(self, email: str, counter: int) -> CredentialRecord:
        with self._keys.hold(email):
            record = self.get(email)
            record.counter = counter
            self._write(email, record)
        return record

    def increment_counter(self, email: str) -> CredentialRecord:
        """Advance the stored counter by one and return the updated record."""

        with self._keys.hold(email):
            record = self.get(email)
            record.counter += 1
            self._write(email, record)
        return record


__all__ = ["CredentialRecord", "CredentialStore", "JsonDocument"]
