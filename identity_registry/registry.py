"""Append-only identity registry keyed by account address.

Records are never removed. Deactivation flips ``active`` in place, after
which the address, email and ID hash are free to register again. Each
registration is mirrored into an ordered event log, and each deactivation
into a separate one, both kept in the same document.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from .constants import MAX_PAGE_SIZE
from .crypto import constant_time_equals, hash_national_id
from .errors import AlreadyRegistered, EmailTaken, IdAlreadyUsed, InvalidInput, NotFound
from .logging_config import audit_log
from .store import JsonDocument

logger = logging.getLogger(__name__)

@dataclass
class IdentityRecord:
    name: str
    email: str
    id_hash: str
    owner_address: str
    registered_at: float
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "id_hash": self.id_hash,
            "owner_address": self.owner_address,
            "registered_at": self.registered_at,
            "active": self.active,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "IdentityRecord":
        return IdentityRecord(
            name=data["name"],
            email=data["email"],
            id_hash=data["id_hash"],
            owner_address=data["owner_address"],
            registered_at=float(data["registered_at"]),
            active=bool(data.get("active", True)),
        )


@dataclass
class RegistrationEvent:
    """Audit entry emitted once per successful registration."""

    owner_address: str
    name: str
    email: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_address": self.owner_address,
            "name": self.name,
            "email": self.email,
            "timestamp": self.timestamp,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "RegistrationEvent":
        return RegistrationEvent(
            owner_address=data["owner_address"],
            name=data["name"],
            email=data["email"],
            timestamp=float(data["timestamp"]),
        )


@dataclass
class DeactivationEvent:
    owner_address: str
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {"owner_address": self.owner_address, "timestamp": self.timestamp}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "DeactivationEvent":
        return DeactivationEvent(owner_address=data["owner_address"], timestamp=float(data["timestamp"]))


class RegistryLedger:
    """Identity records with email and ID-hash uniqueness among active entries."""

    def __init__(self, path: Optional[str] = None, *, clock: Callable[[], float] = time.time) -> None:
        self._document = JsonDocument(path, lambda: {"records": [], "events": [], "deactivations": []})
        self._clock = clock
        self._lock = threading.RLock()
        payload = self._document.load()
        self._records: List[IdentityRecord] = [
            IdentityRecord.from_dict(raw) for raw in payload.get("records", [])
        ]
        self._events: List[RegistrationEvent] = [
            RegistrationEvent.from_dict(raw) for raw in payload.get("events", [])
        ]
        self._deactivations: List[DeactivationEvent] = [
            DeactivationEvent.from_dict(raw) for raw in payload.get("deactivations", [])
        ]
        logger.debug("Loaded %d identity records", len(self._records))

    @property
    def path(self) -> Optional[str]:
        return self._document.path

    def _persist(self) -> None:
        self._document.save(
            {
                "records": [record.to_dict() for record in self._records],
                "events": [event.to_dict() for event in self._events],
                "deactivations": [event.to_dict() for event in self._deactivations],
            }
        )

    def _active(self, predicate: Callable[[IdentityRecord], bool]) -> Optional[IdentityRecord]:
        for record in self._records:
            if record.active and predicate(record):
                return record
        return None

    def register(self, name: str, email: str, id_hash: str, owner_address: str) -> int:
        """Append a new identity and return its record id."""

        fields = {"name": name, "email": email, "id_hash": id_hash, "owner_address": owner_address}
        for field, value in fields.items():
            if not isinstance(value, str) or not value.strip():
                raise InvalidInput(field, "is required")

        with self._lock:
            if self._active(lambda r: r.owner_address == owner_address) is not None:
                audit_log.registration_refused(owner_address, "already registered")
                raise AlreadyRegistered(f"Address {owner_address} is already registered")
            if self._active(lambda r: r.email == email) is not None:
                audit_log.registration_refused(owner_address, "email taken")
                raise EmailTaken(f"Email {email} is already registered")
            if self._active(lambda r: r.id_hash == id_hash) is not None:
                audit_log.registration_refused(owner_address, "id already used")
                raise IdAlreadyUsed("National ID is already registered")

            timestamp = self._clock()
            record = IdentityRecord(
                name=name,
                email=email,
                id_hash=id_hash,
                owner_address=owner_address,
                registered_at=timestamp,
            )
            self._records.append(record)
            self._events.append(
                RegistrationEvent(owner_address=owner_address, name=name, email=email, timestamp=timestamp)
            )
            try:
                self._persist()
            except OSError:
                self._records.pop()
                self._events.pop()
                raise
            record_id = len(self._records) - 1

        audit_log.identity_registered(owner_address, email, record_id)
        return record_id

    def get(self, owner_address: str) -> IdentityRecord:
        with self._lock:
            record = self._active(lambda r: r.owner_address == owner_address)
        if record is None:
            raise NotFound(f"No active identity for {owner_address}")
        return replace(record)

    def record_at(self, record_id: int) -> IdentityRecord:
        """Return the record stored under ``record_id``, active or not."""

        with self._lock:
            if not 0 <= record_id < len(self._records):
                raise NotFound(f"No identity record {record_id}")
            return replace(self._records[record_id])

    def exists(self, owner_address: str) -> bool:
        with self._lock:
            return self._active(lambda r: r.owner_address == owner_address) is not None

    def list_active(self, offset: int = 0, limit: int = MAX_PAGE_SIZE) -> List[IdentityRecord]:
        """Return one page of active records in registration order."""

        if offset < 0:
            raise InvalidInput("offset", "must not be negative")
        if limit <= 0:
            raise InvalidInput("limit", "must be positive")
        limit = min(limit, MAX_PAGE_SIZE)
        with self._lock:
            active = [replace(record) for record in self._records if record.active]
        return active[offset:offset + limit]

    def count_active(self) -> int:
        with self._lock:
            return sum(1 for record in self._records if record.active)

    def deactivate(self, owner_address: str) -> IdentityRecord:
        with self._lock:
            record = self._active(lambda r: r.owner_address == owner_address)
            if record is None:
                raise NotFound(f"No active identity for {owner_address}")
            record.active = False
            self._deactivations.append(DeactivationEvent(owner_address=owner_address, timestamp=self._clock()))
            try:
                self._persist()
            except OSError:
                record.active = True
                self._deactivations.pop()
                raise

        audit_log.identity_deactivated(owner_address)
        return replace(record)

    def verify_id(self, owner_address: str, id_number: str) -> bool:
        """Check a presented national ID number against the stored hash."""

        record = self.get(owner_address)
        presented = hash_national_id(id_number).encode("utf-8")
        return constant_time_equals(presented, record.id_hash.encode("utf-8"))

    def events(self) -> List[RegistrationEvent]:
        with self._lock:
            return list(self._events)

    def deactivations(self) -> List[DeactivationEvent]:
        with self._lock:
            return list(self._deactivations)


__all__ = ["DeactivationEvent", "IdentityRecord", "RegistrationEvent", "RegistryLedger"]
