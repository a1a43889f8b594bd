"""
Logging configuration for the identity registry.

Provides structured JSON logging and an audit logger for registry and
ceremony events.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from typing import Optional


class StructuredFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger for security-relevant events.

    Every event carries an ``event_type`` field so log aggregation can
    filter registrations and ceremony outcomes without parsing messages.
    Never pass challenge bytes, tokens or raw national ID numbers here.
    """

    def __init__(self, name: str = "identity_registry.audit") -> None:
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, message: str, **fields) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {message}",
            (),
            None,
        )
        record.extra_fields = {"event_type": event_type, **fields}
        self._logger.handle(record)

    def identity_registered(self, owner_address: str, email: str, record_id: int) -> None:
        self._log(
            logging.INFO,
            "IDENTITY_REGISTERED",
            f"Identity registered for {owner_address}",
            owner_address=owner_address,
            email=email,
            record_id=record_id,
        )

    def identity_deactivated(self, owner_address: str) -> None:
        self._log(
            logging.INFO,
            "IDENTITY_DEACTIVATED",
            f"Identity deactivated for {owner_address}",
            owner_address=owner_address,
        )

    def registration_refused(self, owner_address: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "REGISTRATION_REFUSED",
            f"Registration refused: {reason}",
            owner_address=owner_address,
            reason=reason,
        )

    def ceremony_started(self, kind: str, email: str) -> None:
        self._log(
            logging.INFO,
            "CEREMONY_STARTED",
            f"{kind} ceremony started",
            ceremony=kind,
            email=email,
        )

    def ceremony_completed(self, kind: str, email: str, credential_id: str) -> None:
        self._log(
            logging.INFO,
            "CEREMONY_COMPLETED",
            f"{kind} ceremony completed",
            ceremony=kind,
            email=email,
            credential_id=credential_id,
        )

    def ceremony_rejected(self, kind: str, reason: str, email: Optional[str] = None) -> None:
        self._log(
            logging.WARNING,
            "CEREMONY_REJECTED",
            f"{kind} ceremony rejected: {reason}",
            ceremony=kind,
            reason=reason,
            email=email,
        )

    def token_rejected(self, reason: str) -> None:
        self._log(
            logging.WARNING,
            "TOKEN_REJECTED",
            f"Session token rejected: {reason}",
            reason=reason,
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit one JSON object per line
        log_file: Optional file path for a second handler
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


audit_log = AuditLogger()


__all__ = ["AuditLogger", "StructuredFormatter", "audit_log", "configure_logging"]
