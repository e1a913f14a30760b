import json
import logging
from unittest import mock

import pytest

from consents import conformance
from consents.audit import AuditEvent, CeleryAuditSink, LogAuditSink, emit_safely, get_audit_sink
from consents.conformance import CertificationConformance, StrictConformance
from consents.lifecycle import ConsentLifecycleManager
from consents.models import ConsentRecord
from consents.tasks import record_audit_event
from consents.wire import parse
from registry.providers import StaticRegistryProvider

CHOICES = {"purposes": {1: True, 2: False}, "vendors": {}, "specialFeatures": {}}


class BrokenSink:
	def record(self, event):
		raise RuntimeError("audit backend down")


@pytest.mark.django_db
def test_create_and_revoke_emit_events_after_commit(manager, domain, audit_sink, django_capture_on_commit_callbacks):
	with django_capture_on_commit_callbacks(execute=True):
		first, _ = manager.create(domain, "user-1", CHOICES)
	assert len(audit_sink.events) == 1
	created = audit_sink.events[0]
	assert created.action == "created"
	assert created.site == domain.url
	assert created.old_record is None
	assert created.new_record["consent_id"] == str(first.consent_id)

	with django_capture_on_commit_callbacks(execute=True):
		second, _ = manager.create(domain, "user-1", CHOICES)
		manager.revoke(domain, "user-1")

	superseding, revoked = audit_sink.events[1:]
	assert superseding.old_record["consent_id"] == str(first.consent_id)
	assert superseding.old_record["status"] == "valid"
	assert superseding.new_record["consent_id"] == str(second.consent_id)
	assert revoked.action == "revoked"
	assert revoked.old_record["status"] == "valid"
	assert revoked.new_record["status"] == "revoked"


@pytest.mark.django_db
def test_events_wait_for_commit(manager, domain, audit_sink, django_capture_on_commit_callbacks):
	with django_capture_on_commit_callbacks() as callbacks:
		manager.create(domain, "user-1", CHOICES)
	assert audit_sink.events == []
	assert len(callbacks) == 1


@pytest.mark.django_db
def test_failing_sink_does_not_fail_the_write(registry, domain, django_capture_on_commit_callbacks):
	manager = ConsentLifecycleManager(
		registry_provider=StaticRegistryProvider(registry),
		audit_sink=BrokenSink(),
		conformance=StrictConformance(),
	)
	with mock.patch("consents.audit.log") as log:
		with django_capture_on_commit_callbacks(execute=True):
			record, _ = manager.create(domain, "user-1", CHOICES)

	assert ConsentRecord.objects.get(pk=record.pk).status == ConsentRecord.VALID
	log.error.assert_called_once()
	assert "audit backend down" in log.error.call_args[0][0]


def test_emit_safely_passes_events_through(audit_sink):
	event = AuditEvent(site="https://a.example", user_id="u", action="created")
	emit_safely(audit_sink, event)
	assert audit_sink.events == [event]


def test_log_sink_writes_one_json_line():
	event = AuditEvent(site="https://a.example", user_id="u", action="revoked", old_record={"status": "valid"})
	with mock.patch.object(LogAuditSink, "logger") as logger:
		LogAuditSink().record(event)
	line = logger.info.call_args[0][0]
	assert json.loads(line)["action"] == "revoked"
	assert json.loads(line)["old_record"] == {"status": "valid"}


def test_celery_sink_queues_the_event():
	event = AuditEvent(site="https://a.example", user_id="u", action="created")
	with mock.patch("consents.tasks.record_audit_event.delay") as delay:
		CeleryAuditSink().record(event)
	delay.assert_called_once_with(event.as_dict())


def test_audit_task_writes_through_log_sink():
	event = AuditEvent(site="https://a.example", user_id="u", action="created")
	with mock.patch.object(LogAuditSink, "logger") as logger:
		result = record_audit_event(event.as_dict())
	assert result == {"recorded": True, "action": "created"}
	logger.info.assert_called_once()


def test_audit_sink_comes_from_settings(settings):
	assert isinstance(get_audit_sink(), LogAuditSink)
	settings.CONSENT_AUDIT_SINK = "consents.audit.CeleryAuditSink"
	assert isinstance(get_audit_sink(), CeleryAuditSink)


def test_conformance_mode_comes_from_settings(settings):
	assert isinstance(conformance.from_settings(), StrictConformance)
	settings.CONSENT_CONFORMANCE_MODE = "certification"
	assert isinstance(conformance.from_settings(), CertificationConformance)
	settings.CONSENT_CONFORMANCE_MODE = "sniff-the-user-agent"
	with pytest.raises(ValueError):
		conformance.from_settings()


@pytest.mark.django_db
def test_certification_mode_grants_everything_and_says_so(registry, domain, audit_sink, caplog,
															django_capture_on_commit_callbacks):
	manager = ConsentLifecycleManager(
		registry_provider=StaticRegistryProvider(registry),
		audit_sink=audit_sink,
		conformance=CertificationConformance(),
	)
	with caplog.at_level(logging.WARNING, logger="consents.conformance"):
		with django_capture_on_commit_callbacks(execute=True):
			record, tc_string = manager.create(domain, "user-1", CHOICES)

	assert "Certification conformance mode" in caplog.text
	assert record.conformance_mode == "certification"
	assert audit_sink.events[0].conformance_mode == "certification"

	parsed = parse(tc_string)
	assert dict(parsed.purpose_consents) == {pid: True for pid in range(1, 12)}
	assert dict(parsed.vendor_consents) == {1: True, 2: True, 755: True}
	assert dict(parsed.special_feature_optins) == {1: True, 2: True}
	assert 1 not in parsed.purpose_legitimate_interests
	assert 3 not in parsed.purpose_legitimate_interests


@pytest.mark.django_db
def test_strict_mode_keeps_the_users_choices(manager, domain):
	record, tc_string = manager.create(domain, "user-1", CHOICES)
	assert record.conformance_mode == "strict"
	assert dict(parse(tc_string).purpose_consents) == {1: True}
