"""
The normalized consent decision set.

A DecisionSet is an immutable value: its mappings are read-only views over
dicts built at construction, and every change goes through `replace()`,
which builds a new DecisionSet.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace as dc_replace
from datetime import datetime, timedelta, timezone as dt_timezone
from types import MappingProxyType
from typing import Mapping, Optional

from django.conf import settings
from django.utils import timezone

DECISION_FIELDS = (
	"purpose_consents",
	"purpose_legitimate_interests",
	"vendor_consents",
	"vendor_legitimate_interests",
	"special_feature_optins",
	"publisher_consents",
	"publisher_legitimate_interests",
	"custom_purpose_consents",
	"custom_purpose_legitimate_interests",
)

STORAGE_ACCESS_PURPOSE = 1  # "Store and/or access information on a device"


def _to_ms(value: datetime) -> datetime:
	"""Truncate to millisecond precision, the resolution of the wire string."""
	if timezone.is_naive(value):
		value = timezone.make_aware(value, dt_timezone.utc)
	return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)


def to_epoch_ms(value: datetime) -> int:
	return (_to_ms(value) - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int) -> datetime:
	return EPOCH + timedelta(milliseconds=value)


def freeze(mapping: Optional[Mapping]) -> Mapping[int, bool]:
	return MappingProxyType({int(k): bool(v) for k, v in (mapping or {}).items()})


@dataclass(frozen=True)
class DecisionMetadata:
	created: datetime
	last_updated: datetime
	cmp_id: int
	cmp_version: int
	policy_version: int
	is_service_specific: bool
	publisher_cc: str
	tcf_version: int = 2
	consent_screen: int = 1
	consent_language: str = "EN"
	vendor_list_version: int = 0

	def __post_init__(self):
		object.__setattr__(self, "created", _to_ms(self.created))
		object.__setattr__(self, "last_updated", _to_ms(self.last_updated))

	@classmethod
	def from_settings(cls, now: Optional[datetime] = None, **overrides) -> "DecisionMetadata":
		now = now or timezone.now()
		values = {
			"created": now,
			"last_updated": now,
			"cmp_id": settings.IAB_CMP_ID,
			"cmp_version": settings.CMP_VERSION,
			"policy_version": settings.TCF_POLICY_VERSION,
			"is_service_specific": settings.IS_SERVICE_SPECIFIC,
			"publisher_cc": settings.PUBLISHER_CC,
			"tcf_version": settings.TCF_VERSION,
			"consent_screen": settings.CONSENT_SCREEN,
			"consent_language": settings.CONSENT_LANGUAGE,
		}
		values.update(overrides)
		return cls(**values)

	def updated(self, now: datetime, **changes) -> "DecisionMetadata":
		return dc_replace(self, last_updated=now, **changes)

	def as_dict(self) -> dict:
		return {
			"created": self.created.isoformat(),
			"lastUpdated": self.last_updated.isoformat(),
			"cmpId": self.cmp_id,
			"cmpVersion": self.cmp_version,
			"policyVersion": self.policy_version,
			"isServiceSpecific": self.is_service_specific,
			"publisherCC": self.publisher_cc,
			"tcfVersion": self.tcf_version,
			"consentScreen": self.consent_screen,
			"consentLanguage": self.consent_language,
			"vendorListVersion": self.vendor_list_version,
		}

	@classmethod
	def from_dict(cls, data: dict) -> "DecisionMetadata":
		return cls(
			created=datetime.fromisoformat(data["created"]),
			last_updated=datetime.fromisoformat(data["lastUpdated"]),
			cmp_id=data["cmpId"],
			cmp_version=data["cmpVersion"],
			policy_version=data["policyVersion"],
			is_service_specific=data["isServiceSpecific"],
			publisher_cc=data["publisherCC"],
			tcf_version=data.get("tcfVersion", 2),
			consent_screen=data.get("consentScreen", 1),
			consent_language=data.get("consentLanguage", "EN"),
			vendor_list_version=data.get("vendorListVersion", 0),
		)


def _empty():
	return MappingProxyType({})


@dataclass(frozen=True)
class DecisionSet:
	"""
	purpose/vendor/special-feature/publisher decisions, each an
	identifier -> bool mapping. A missing key means "no decision made";
	the wire string cannot tell that apart from False.
	"""
	metadata: DecisionMetadata
	purpose_consents: Mapping[int, bool] = field(default_factory=_empty)
	purpose_legitimate_interests: Mapping[int, bool] = field(default_factory=_empty)
	vendor_consents: Mapping[int, bool] = field(default_factory=_empty)
	vendor_legitimate_interests: Mapping[int, bool] = field(default_factory=_empty)
	special_feature_optins: Mapping[int, bool] = field(default_factory=_empty)
	publisher_consents: Mapping[int, bool] = field(default_factory=_empty)
	publisher_legitimate_interests: Mapping[int, bool] = field(default_factory=_empty)
	custom_purpose_consents: Mapping[int, bool] = field(default_factory=_empty)
	custom_purpose_legitimate_interests: Mapping[int, bool] = field(default_factory=_empty)

	def __post_init__(self):
		for name in DECISION_FIELDS:
			object.__setattr__(self, name, freeze(getattr(self, name)))

	def __eq__(self, other):
		if not isinstance(other, DecisionSet):
			return NotImplemented
		return all(
			dict(getattr(self, f.name)) == dict(getattr(other, f.name)) if f.name in DECISION_FIELDS
			else getattr(self, f.name) == getattr(other, f.name)
			for f in fields(self)
		)

	def replace(self, **changes) -> "DecisionSet":
		return dc_replace(self, **changes)

	def mappings(self) -> dict:
		return {name: dict(getattr(self, name)) for name in DECISION_FIELDS}

	def granted(self, name: str) -> list[int]:
		return sorted(k for k, v in getattr(self, name).items() if v)

	def allows_purpose(self, purpose_id: int) -> bool:
		return self.purpose_consents.get(purpose_id) is True

	def allows_vendor(self, vendor_id: int) -> bool:
		return self.vendor_consents.get(vendor_id) is True

	@classmethod
	def minimal(cls, metadata: DecisionMetadata) -> "DecisionSet":
		"""The decision set used when no decisions were supplied at all."""
		return cls(metadata=metadata, purpose_consents={STORAGE_ACCESS_PURPOSE: True})
