"""Single-use, time-bounded challenges for pending ceremonies."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from .constants import CHALLENGE_BYTES, CHALLENGE_TTL_SECONDS, REGISTRATION, SWEEP_INTERVAL_SECONDS
from .errors import Expired, NotFound

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
RandomSource = Callable[[int], bytes]


@dataclass
class PendingChallenge:
    challenge_key: str
    challenge: bytes
    email: str
    expires_at: float
    name: Optional[str] = None
    kind: str = REGISTRATION


class ChallengeLedger:
    """In-memory map from challenge key to pending ceremony state.

    Nothing here survives a restart; clients simply begin the ceremony again.
    """

    def __init__(
        self,
        *,
        ttl: float = CHALLENGE_TTL_SECONDS,
        clock: Clock = time.time,
        random_bytes: RandomSource = secrets.token_bytes,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._random_bytes = random_bytes
        self._pending: Dict[str, PendingChallenge] = {}
        self._lock = threading.Lock()

    def issue(
        self,
        email: str,
        name: Optional[str] = None,
        ttl: Optional[float] = None,
        *,
        kind: str = REGISTRATION,
    ) -> Tuple[str, bytes]:
        challenge = self._random_bytes(CHALLENGE_BYTES)
        expires_at = self._clock() + (self.ttl if ttl is None else ttl)
        with self._lock:
            challenge_key = secrets.token_urlsafe(16)
            while challenge_key in self._pending:
                challenge_key = secrets.token_urlsafe(16)
            self._pending[challenge_key] = PendingChallenge(
                challenge_key=challenge_key,
                challenge=challenge,
                email=email,
                expires_at=expires_at,
                name=name,
                kind=kind,
            )
        return challenge_key, challenge

    def consume(self, challenge_key: str) -> PendingChallenge:
        """Remove and return the pending challenge.

        The entry is gone after this call whatever the outcome, so a second
        call with the same key always raises ``NotFound``.
        """
        with self._lock:
            pending = self._pending.pop(challenge_key, None)
        if pending is None:
            raise NotFound("Unknown or already used challenge")
        if self._clock() > pending.expires_at:
            raise Expired("Challenge expired")
        return pending

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""

        now = self._clock()
        with self._lock:
            expired = [key for key, pending in self._pending.items() if now > pending.expires_at]
            for key in expired:
                del self._pending[key]
        if expired:
            logger.debug("Swept %d expired challenges", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, challenge_key: object) -> bool:
        with self._lock:
            return challenge_key in self._pending


class ChallengeSweeper:
    """Run ``ChallengeLedger.sweep`` on a daemon thread at a fixed interval."""

    def __init__(self, ledger: ChallengeLedger, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        self.ledger = ledger
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="challenge-sweeper", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.ledger.sweep()
            except Exception:  # pragma: no cover - keep the sweeper alive
                logger.exception("Challenge sweep failed")


__all__ = ["ChallengeLedger", "ChallengeSweeper", "PendingChallenge"]
