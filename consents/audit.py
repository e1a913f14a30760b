# consents/audit.py
"""
Audit trail of consent state changes.

Events are emitted after the write commits. A sink that fails is logged
and otherwise ignored: the consent change it describes has already happened.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, field
from typing import Optional

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

log = logging.getLogger(__name__)

CREATED = "created"
REVOKED = "revoked"


@dataclass(frozen=True)
class AuditEvent:
	site: str
	user_id: str
	action: str
	old_record: Optional[dict] = None
	new_record: Optional[dict] = None
	conformance_mode: str = "strict"
	occurred_at: str = field(default_factory=lambda: timezone.now().isoformat())

	def as_dict(self) -> dict:
		return asdict(self)

	@classmethod
	def from_dict(cls, data: dict) -> "AuditEvent":
		return cls(**data)


class LogAuditSink:
	"""Writes each event as one JSON line on the `consents.audit` logger."""

	logger = logging.getLogger("consents.audit")

	def record(self, event: AuditEvent):
		self.logger.info(json.dumps(event.as_dict(), default=str, sort_keys=True))


class CeleryAuditSink:
	"""Hands events to a Celery worker so the request never waits on the audit trail."""

	def record(self, event: AuditEvent):
		from consents.tasks import record_audit_event
		record_audit_event.delay(event.as_dict())


def get_audit_sink(path: Optional[str] = None):
	return import_string(path or settings.CONSENT_AUDIT_SINK)()


def emit_safely(sink, event: AuditEvent):
	try:
		sink.record(event)
	except Exception as e:
		log.error(f"Audit sink {type(sink).__name__} failed for {event.action} on {event.site}/{event.user_id}: {e}")
