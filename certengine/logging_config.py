"""
Logging configuration for the certification engine.

Provides structured JSON logging and an audit logger for assessment and
certificate events. Audit events go to the "certengine.audit" logger with
their fields attached as `extra_fields`, which StructuredFormatter merges
into the JSON line.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import List, Optional

from .canonicalization import format_timestamp

# Request ID of the HTTP call being served, if any
request_id_var: ContextVar[str] = ContextVar('request_id', default='')

QUIET_LOGGERS = ("urllib3", "httpx")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, timestamps in UTC with milliseconds."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": format_timestamp(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        rid = request_id_var.get()
        if rid:
            entry["request_id"] = rid

        fields = getattr(record, 'extra_fields', None)
        if fields:
            entry.update(fields)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class AuditLogger:
    """
    One method per engine event. Each records the identifiers needed to
    trace a score or certificate back to its inputs and configuration.
    """

    def __init__(self, name: str = "certengine.audit"):
        self._logger = logging.getLogger(name)

    def _emit(self, level: int, event: str, message: str, **fields) -> None:
        fields["event_type"] = event
        self._logger.log(level, "%s: %s", event, message, extra={"extra_fields": fields})

    def risk_classified(self, risk_level: str, risk_score: int, config_hash: str,
                        prohibited: Optional[List[str]] = None) -> None:
        self._emit(
            logging.WARNING if prohibited else logging.INFO,
            "RISK_CLASSIFIED",
            f"risk {risk_level} ({risk_score}/100)",
            risk_level=risk_level,
            risk_score=risk_score,
            config_hash=config_hash,
            prohibited=prohibited or [],
        )

    def maturity_scored(self, overall_maturity: str, overall_score: int,
                        framework_hash: str, config_hash: str) -> None:
        self._emit(
            logging.INFO,
            "MATURITY_SCORED",
            f"maturity {overall_maturity} ({overall_score}/100)",
            overall_maturity=overall_maturity,
            overall_score=overall_score,
            framework_hash=framework_hash,
            config_hash=config_hash,
        )

    def recommendations_generated(self, source: str, count: int,
                                  reason: Optional[str] = None) -> None:
        self._emit(
            logging.INFO if source == "generative" else logging.WARNING,
            "RECOMMENDATIONS_GENERATED",
            f"{count} from {source}",
            source=source,
            count=count,
            reason=reason,
        )

    def certificate_issued(self, certificate_number: str, certificate_type: str,
                           compliance_score: int, certificate_hash: str,
                           sealed: bool = False) -> None:
        self._emit(
            logging.INFO,
            "CERTIFICATE_ISSUED",
            certificate_number,
            certificate_number=certificate_number,
            certificate_type=certificate_type,
            compliance_score=compliance_score,
            certificate_hash=certificate_hash,
            sealed=sealed,
        )

    def certificate_verified(self, certificate_number: Optional[str], outcome: str,
                             reason: Optional[str] = None) -> None:
        self._emit(
            logging.INFO if outcome == "VALID" else logging.WARNING,
            "CERTIFICATE_VERIFIED",
            f"{certificate_number} {outcome}",
            certificate_number=certificate_number,
            outcome=outcome,
            reason=reason,
        )

    def serial_collision(self, certificate_number: str) -> None:
        self._emit(
            logging.ERROR,
            "SERIAL_COLLISION",
            certificate_number,
            certificate_number=certificate_number,
        )


def configure_logging(level: str = "INFO", json_format: bool = True,
                      log_file: Optional[str] = None) -> None:
    """
    Install handlers on the root logger, replacing any already present.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines (StructuredFormatter) instead of plain text
        log_file: also write to this file
    """
    formatter = (StructuredFormatter() if json_format
                 else logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for h in handlers:
        h.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level.upper())
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request ID (generated when absent) to the current context."""
    rid = request_id or uuid.uuid4().hex
    request_id_var.set(rid)
    return rid


def get_request_id() -> str:
    return request_id_var.get()


audit_log = AuditLogger()
