import uuid
from django.db import models
from django.db.models import Q
from django.utils import timezone
from domains.models import Domain


class ConsentRecord(models.Model):
	VALID = "valid"
	SUPERSEDED = "superseded"
	REVOKED = "revoked"
	STATUSES = [
		(VALID, "Valid"),
		(SUPERSEDED, "Superseded"),
		(REVOKED, "Revoked"),
	]

	consent_id = models.UUIDField(default=uuid.uuid4, editable=False, unique=True)

	domain = models.ForeignKey(Domain, on_delete=models.CASCADE, related_name="consent_records")
	user_id = models.CharField(max_length=255)

	# Only the lifecycle manager moves a record out of "valid"
	status = models.CharField(max_length=20, choices=STATUSES, default=VALID)
	valid_from = models.DateTimeField(default=timezone.now)
	valid_until = models.DateTimeField(null=True, blank=True)

	tc_string = models.TextField()
	decisions = models.JSONField(default=dict)  # storage format snapshot
	decision_metadata = models.JSONField(default=dict)
	conformance_mode = models.CharField(max_length=20, default="strict")

	# GDPR-safe context
	truncated_ip = models.GenericIPAddressField(null=True, blank=True)
	user_agent = models.TextField(blank=True, default="")
	language = models.CharField(max_length=35, blank=True, default="")
	device_type = models.CharField(max_length=20, blank=True, default="")
	region = models.CharField(max_length=64, blank=True, default="")

	created_at = models.DateTimeField(default=timezone.now)

	class Meta:
		ordering = ["-created_at"]
		constraints = [
			models.UniqueConstraint(
				fields=["domain", "user_id"],
				condition=Q(status="valid"),
				name="one_valid_consent_per_user",
			),
		]
		indexes = [
			models.Index(fields=["domain", "user_id", "status"]),
			models.Index(fields=["domain", "user_id", "valid_from"]),
		]

	def __str__(self):
		return f"Consent {self.status} for {self.user_id} on {self.domain.url} ({self.valid_from.date()})"

	def is_valid(self) -> bool:
		return self.status == self.VALID

	def to_decisions(self):
		"""Rebuild the DecisionSet from the stored snapshot (lossless, unlike the TC string)."""
		from consents.decisions import DecisionMetadata
		from consents.translator import DecisionFormat, FormattedDecisions, to_model

		metadata = DecisionMetadata.from_dict(self.decision_metadata)
		return to_model(FormattedDecisions(DecisionFormat.STORAGE, self.decisions), metadata)

	def snapshot(self) -> dict:
		return {
			"consent_id": str(self.consent_id),
			"domain": self.domain.url,
			"user_id": self.user_id,
			"status": self.status,
			"valid_from": self.valid_from.isoformat() if self.valid_from else None,
			"valid_until": self.valid_until.isoformat() if self.valid_until else None,
			"tc_string": self.tc_string,
			"decisions": self.decisions,
			"conformance_mode": self.conformance_mode,
		}
