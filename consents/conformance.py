"""
Conformance modes decide which decisions actually get encoded.

StrictConformance encodes what the user chose and is the default.
CertificationConformance replaces every submission with an all-granted
decision set built from the registry, for running against a CMP
certification harness. It has to be switched on explicitly with
CONSENT_CONFORMANCE_MODE = "certification"; it warns on every use and the
records and audit events it produces carry its name.
"""
from __future__ import annotations

import logging

from django.conf import settings

from registry.reference import RegistryReference
from .decisions import DecisionSet
from .validation import ValidatedDecisions, ValidationPolicy

log = logging.getLogger(__name__)

STRICT = "strict"
CERTIFICATION = "certification"


class StrictConformance:
	name = STRICT

	def apply(self, validated: ValidatedDecisions, registry: RegistryReference) -> ValidatedDecisions:
		return validated


class CertificationConformance:
	name = CERTIFICATION

	def apply(self, validated: ValidatedDecisions, registry: RegistryReference) -> ValidatedDecisions:
		log.warning(
			f"Certification conformance mode active: replacing submitted decisions "
			f"with all-granted decisions from registry v{registry.version}"
		)
		decisions = validated.decisions
		purposes = {pid: True for pid in registry.purposes}
		consent_only = ValidationPolicy.from_settings().consent_only_purposes
		li_purposes = {
			pid: True for pid in registry.purposes
			if pid not in consent_only and not registry.is_consent_only(pid)
		}
		granted = DecisionSet(
			metadata=decisions.metadata,
			purpose_consents=purposes,
			purpose_legitimate_interests=li_purposes,
			vendor_consents={vid: True for vid in registry.vendors},
			vendor_legitimate_interests={
				vid: True for vid, vendor in registry.vendors.items() if vendor.claims_legitimate_interest
			},
			special_feature_optins={fid: True for fid in registry.special_features},
			publisher_consents=purposes,
			custom_purpose_consents=decisions.custom_purpose_consents,
			custom_purpose_legitimate_interests=decisions.custom_purpose_legitimate_interests,
		)
		return ValidatedDecisions(decisions=granted, registry_version=registry.version)


CONFORMANCE_MODES = {
	STRICT: StrictConformance,
	CERTIFICATION: CertificationConformance,
}


def from_settings():
	mode = getattr(settings, "CONSENT_CONFORMANCE_MODE", STRICT) or STRICT
	try:
		return CONFORMANCE_MODES[mode]()
	except KeyError:
		raise ValueError(f"Unknown CONSENT_CONFORMANCE_MODE {mode!r}") from None
