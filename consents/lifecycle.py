"""
The consent lifecycle: the only code that writes ConsentRecords.

Per (domain, user) the states are valid -> superseded | revoked. A new
valid record can always be created; the previous valid one is superseded
in the same transaction, so readers never see two valid records.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, OperationalError, connection, transaction
from django.db.models import Q
from django.utils import timezone

from registry.providers import DatabaseRegistryProvider
from . import conformance as conformance_modes
from .audit import AuditEvent, CREATED, REVOKED, emit_safely, get_audit_sink
from .decisions import DecisionMetadata
from .errors import NotFound
from .models import ConsentRecord
from .translator import DecisionFormat, FormattedDecisions, to_client, to_model, to_storage
from .validation import ValidationPolicy, validate
from .wire import assemble, parse

log = logging.getLogger(__name__)

NO_VALID_CONSENT = "NoValidConsent"
CONSENT_NOT_GRANTED = "ConsentNotGranted"


@dataclass(frozen=True)
class RequestMetadata:
	truncated_ip: Optional[str] = None
	user_agent: str = ""
	language: str = ""
	device_type: str = ""
	region: str = ""


@dataclass(frozen=True)
class VerificationResult:
	has_consent: bool
	reason: Optional[str] = None
	purposes: dict = field(default_factory=dict)
	vendors: dict = field(default_factory=dict)
	consent_id: Optional[str] = None

	def as_dict(self) -> dict:
		return {
			"has_consent": self.has_consent,
			"reason": self.reason,
			"purposes": self.purposes,
			"vendors": self.vendors,
			"consent_id": self.consent_id,
		}


class ConsentLifecycleManager:
	# A lost race surfaces as IntegrityError on the partial unique constraint
	MAX_ATTEMPTS = 3
	# SQLite shared-cache connections report a busy writer as "locked" without waiting
	LOCK_ATTEMPTS = 10
	LOCK_BACKOFF = 0.05

	def __init__(self, registry_provider=None, audit_sink=None, conformance=None, clock=None):
		self.registry_provider = registry_provider or DatabaseRegistryProvider()
		self.audit_sink = audit_sink or get_audit_sink()
		self.conformance = conformance or conformance_modes.from_settings()
		self.clock = clock or timezone.now

	def create(
			self,
			domain,
			user_id: str,
			decisions,
			request_metadata: Optional[RequestMetadata] = None,
			timeout: Optional[float] = None,
	):
		"""
		Validate and encode `decisions`, then make them the user's one valid record.
		Returns (record, tc_string). Raises ValidationFailed before anything is written.
		"""
		if not isinstance(decisions, FormattedDecisions):
			decisions = FormattedDecisions(DecisionFormat.CLIENT, decisions)
		request_metadata = request_metadata or RequestMetadata()

		now = self.clock()
		registry = self.registry_provider.get_latest_registry(timeout=timeout)
		metadata = DecisionMetadata.from_settings(now=now, vendor_list_version=registry.version)
		model = to_model(decisions, metadata)

		validated = validate(model, registry, ValidationPolicy.for_domain(domain))
		validated = self.conformance.apply(validated, registry)
		tc_string = assemble(validated)
		stored = to_storage(validated.decisions, registry, domain.get_custom_purposes())

		conflicts = locks = 0
		while True:
			try:
				record = self._supersede_and_insert(
					domain, user_id, now, tc_string, stored, validated.decisions.metadata,
					request_metadata, timeout,
				)
				break
			except IntegrityError:
				conflicts += 1
				if conflicts >= self.MAX_ATTEMPTS:
					raise
				log.warning(f"Concurrent consent write for {user_id} on {domain.url}, retrying ({conflicts})")
			except OperationalError as e:
				locks += 1
				if "locked" not in str(e) or locks >= self.LOCK_ATTEMPTS:
					raise
				log.warning(f"Database locked writing consent for {user_id} on {domain.url}, retrying ({locks})")
				time.sleep(self.LOCK_BACKOFF * locks)

		log.info(f"Consent {record.consent_id} is valid for {user_id} on {domain.url}")
		return record, tc_string

	def _supersede_and_insert(self, domain, user_id, now, tc_string, stored, metadata, request_metadata, timeout):
		with transaction.atomic():
			self._apply_timeout(timeout)

			previous = list(
				ConsentRecord.objects.select_for_update()
				.filter(domain=domain, user_id=user_id, status=ConsentRecord.VALID)
			)
			old_snapshot = previous[0].snapshot() if previous else None
			if previous:
				ConsentRecord.objects.filter(pk__in=[r.pk for r in previous]).update(
					status=ConsentRecord.SUPERSEDED, valid_until=now,
				)
				log.debug(f"Superseded {len(previous)} record(s) for {user_id} on {domain.url}")

			record = ConsentRecord.objects.create(
				domain=domain,
				user_id=user_id,
				status=ConsentRecord.VALID,
				valid_from=now,
				tc_string=tc_string,
				decisions=stored,
				decision_metadata=metadata.as_dict(),
				conformance_mode=self.conformance.name,
				truncated_ip=request_metadata.truncated_ip or None,
				user_agent=request_metadata.user_agent,
				language=request_metadata.language,
				device_type=request_metadata.device_type,
				region=request_metadata.region,
				created_at=now,
			)
			self._schedule_audit(CREATED, domain, user_id, old_snapshot, record.snapshot())
		return record

	def _apply_timeout(self, timeout: Optional[float]):
		if timeout is not None:
			timeout_ms = int(timeout * 1000)
		else:
			timeout_ms = settings.CONSENT_STORE_TIMEOUT_MS
		# SET LOCAL ends with the transaction, so a timeout rolls back the whole write
		if timeout_ms and connection.vendor == "postgresql":
			with connection.cursor() as cursor:
				cursor.execute(f"SET LOCAL statement_timeout = {int(timeout_ms)}")

	def _schedule_audit(self, action, domain, user_id, old_record, new_record):
		event = AuditEvent(
			site=domain.url,
			user_id=user_id,
			action=action,
			old_record=old_record,
			new_record=new_record,
			conformance_mode=self.conformance.name,
		)
		transaction.on_commit(lambda: emit_safely(self.audit_sink, event))

	def revoke(self, domain, user_id: str, timeout: Optional[float] = None) -> ConsentRecord:
		now = self.clock()
		with transaction.atomic():
			self._apply_timeout(timeout)
			record = (
				ConsentRecord.objects.select_for_update()
				.filter(domain=domain, user_id=user_id, status=ConsentRecord.VALID)
				.first()
			)
			if record is None:
				raise NotFound(f"No valid consent for {user_id} on {domain.url}")

			old_snapshot = record.snapshot()
			record.status = ConsentRecord.REVOKED
			record.valid_until = now
			record.save(update_fields=["status", "valid_until"])
			self._schedule_audit(REVOKED, domain, user_id, old_snapshot, record.snapshot())

		log.info(f"Consent {record.consent_id} revoked for {user_id} on {domain.url}")
		return record

	def current(self, domain, user_id: str) -> ConsentRecord:
		record = ConsentRecord.objects.filter(
			domain=domain, user_id=user_id, status=ConsentRecord.VALID
		).first()
		if record is None:
			raise NotFound(f"No valid consent for {user_id} on {domain.url}")
		return record

	def verify(self, domain, user_id: str, purpose_ids=(), vendor_ids=()) -> VerificationResult:
		"""has_consent is true only when every requested purpose and vendor is allowed."""
		try:
			record = self.current(domain, user_id)
		except NotFound:
			return VerificationResult(
				has_consent=False,
				reason=NO_VALID_CONSENT,
				purposes={pid: False for pid in purpose_ids},
				vendors={vid: False for vid in vendor_ids},
			)

		decisions = record.to_decisions()
		purposes = {pid: decisions.allows_purpose(pid) for pid in purpose_ids}
		vendors = {vid: decisions.allows_vendor(vid) for vid in vendor_ids}
		has_consent = all(purposes.values()) and all(vendors.values())
		return VerificationResult(
			has_consent=has_consent,
			reason=None if has_consent else CONSENT_NOT_GRANTED,
			purposes=purposes,
			vendors=vendors,
			consent_id=str(record.consent_id),
		)

	def history(self, domain, user_id: str, start=None, end=None):
		"""Records whose validity window overlaps [start, end]; open-ended records are still valid."""
		records = ConsentRecord.objects.filter(domain=domain, user_id=user_id)
		if start is not None:
			records = records.filter(Q(valid_until__isnull=True) | Q(valid_until__gte=start))
		if end is not None:
			records = records.filter(valid_from__lte=end)
		return list(records.order_by("valid_from", "created_at"))

	def decode(self, tc_string: str) -> dict:
		return to_client(parse(tc_string))
