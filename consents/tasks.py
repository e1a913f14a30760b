# consents/tasks.py
from celery import shared_task
import logging

log = logging.getLogger(__name__)


@shared_task
def record_audit_event(event: dict):
	"""
	Write a consent audit event from a worker.
	Queued by CeleryAuditSink after the consent change commits.
	"""
	from consents.audit import AuditEvent, LogAuditSink

	LogAuditSink().record(AuditEvent.from_dict(event))
	log.debug(f"Audit event {event.get('action')} recorded for {event.get('site')}")
	return {"recorded": True, "action": event.get("action")}
