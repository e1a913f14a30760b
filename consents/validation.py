"""
Checks a DecisionSet against the registry and the site's legal-basis policy.

Validation is all-or-nothing: every problem is collected and reported
together, and no partially validated decision set is ever returned.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from django.conf import settings

from registry.reference import RegistryReference
from .decisions import DecisionSet, STORAGE_ACCESS_PURPOSE
from .errors import UnknownIdentifier, InvalidLegalBasis, ValidationFailed

CONSENT = "consent"
LEGITIMATE_INTEREST = "legitimate_interest"
LEGAL_BASES = (CONSENT, LEGITIMATE_INTEREST)


@dataclass(frozen=True)
class ValidationPolicy:
	consent_only_purposes: frozenset = frozenset({STORAGE_ACCESS_PURPOSE})
	custom_purposes: Mapping[int, str] = field(default_factory=lambda: MappingProxyType({}))

	@classmethod
	def from_settings(cls, custom_purposes=None) -> "ValidationPolicy":
		return cls(
			consent_only_purposes=frozenset(settings.CONSENT_ONLY_PURPOSES) | {STORAGE_ACCESS_PURPOSE},
			custom_purposes=MappingProxyType(dict(custom_purposes or {})),
		)

	@classmethod
	def for_domain(cls, domain) -> "ValidationPolicy":
		return cls.from_settings(custom_purposes=domain.get_custom_purposes())


@dataclass(frozen=True)
class ValidatedDecisions:
	"""A DecisionSet that passed validation against `registry_version`."""
	decisions: DecisionSet
	registry_version: int


# (decision field, whether it holds legitimate-interest claims)
_PURPOSE_FIELDS = (
	("purpose_consents", False),
	("purpose_legitimate_interests", True),
	("publisher_consents", False),
	("publisher_legitimate_interests", True),
)


def collect_errors(decisions: DecisionSet, registry: RegistryReference, policy: ValidationPolicy) -> list:
	errors = []

	for field_name, is_li in _PURPOSE_FIELDS:
		for purpose_id, allowed in getattr(decisions, field_name).items():
			if not registry.has_purpose(purpose_id):
				errors.append(UnknownIdentifier("purposes", purpose_id, field_name))
				continue
			if is_li and allowed:
				reason = _purpose_li_violation(purpose_id, registry, policy)
				if reason:
					errors.append(InvalidLegalBasis("purposes", purpose_id, LEGITIMATE_INTEREST, reason))

	for field_name in ("vendor_consents", "vendor_legitimate_interests"):
		for vendor_id, allowed in getattr(decisions, field_name).items():
			if not registry.has_vendor(vendor_id):
				errors.append(UnknownIdentifier("vendors", vendor_id, field_name))
				continue
			if field_name == "vendor_legitimate_interests" and allowed:
				if not registry.vendors[vendor_id].claims_legitimate_interest:
					errors.append(InvalidLegalBasis(
						"vendors", vendor_id, LEGITIMATE_INTEREST,
						"vendor declares no legitimate-interest purposes",
					))

	for feature_id in decisions.special_feature_optins:
		if not registry.has_special_feature(feature_id):
			errors.append(UnknownIdentifier("specialFeatures", feature_id, "special_feature_optins"))

	for field_name in ("custom_purpose_consents", "custom_purpose_legitimate_interests"):
		for purpose_id in getattr(decisions, field_name):
			if purpose_id not in policy.custom_purposes:
				errors.append(UnknownIdentifier("customPurposes", purpose_id, field_name))

	return errors


def _purpose_li_violation(purpose_id: int, registry: RegistryReference, policy: ValidationPolicy):
	if purpose_id == STORAGE_ACCESS_PURPOSE:
		return "purpose 1 may only be processed with consent"
	if purpose_id in policy.consent_only_purposes:
		return "purpose is consent-only under the configured policy"
	if registry.is_consent_only(purpose_id):
		return "no registered vendor processes this purpose under legitimate interest"
	return None


def validate(decisions: DecisionSet, registry: RegistryReference, policy: ValidationPolicy) -> ValidatedDecisions:
	errors = collect_errors(decisions, registry, policy)
	if errors:
		raise ValidationFailed(errors)
	return ValidatedDecisions(decisions=decisions, registry_version=registry.version)
