import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

audit_logger = logging.getLogger("formsapi.audit")

FORM_CREATED = "form_created"
SCHEMA_UPDATED = "schema_updated"
RESPONSE_SUBMITTED = "response_submitted"
FORM_SOFT_DELETED = "form_soft_deleted"
RESPONSE_SOFT_DELETED = "response_soft_deleted"


class AuditSink(ABC):
    """Receives one event per successful state change of the forms engine."""

    @abstractmethod
    def emit(self, action: str, entity_id: str, actor: str, timestamp: datetime, **details: Any) -> None:
        ...


def build_event(action: str, entity_id: str, actor: str, timestamp: datetime, **details: Any) -> Dict[str, Any]:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return {
        "action": action,
        "entityId": entity_id,
        "actor": actor,
        "timestamp": timestamp.isoformat(),
        **details,
    }


class LoggingAuditSink(AuditSink):
    """Writes each event as a JSON line on the `formsapi.audit` logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or audit_logger

    def emit(self, action, entity_id, actor, timestamp, **details):
        event = build_event(action, entity_id, actor, timestamp, **details)
        self.logger.info(json.dumps(event, default=str))


class InMemoryAuditSink(AuditSink):
    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def emit(self, action, entity_id, actor, timestamp, **details):
        self.events.append(build_event(action, entity_id, actor, timestamp, **details))

    def actions(self) -> List[str]:
        return [event["action"] for event in self.events]


def configure_audit_log(path: Optional[str]) -> None:
    """Send audit events to `path` in addition to the normal log handlers."""
    if not path:
        return
    for handler in audit_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename.endswith(path):
            return
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.setLevel(logging.INFO)
