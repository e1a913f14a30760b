"""
Conversions between the three decision shapes and the DecisionSet.

- client:  flat {id: bool} maps (`purposes`, `vendors`, `specialFeatures`, ...)
- storage: lists of {id, name, allowed, legalBasis} records per namespace
- wire:    nested {purpose: {consents, legitimateInterests}, ...}

Callers say which shape they are sending with FormattedDecisions;
detect_format() is only a convenience for callers that cannot.
Every conversion builds new dicts and lists; inputs are never modified.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional

from registry.reference import RegistryReference
from .decisions import DecisionMetadata, DecisionSet
from .errors import TranslationError
from .validation import CONSENT, LEGITIMATE_INTEREST, LEGAL_BASES


class DecisionFormat(str, enum.Enum):
	CLIENT = "client"
	STORAGE = "storage"
	WIRE = "wire"
	UNKNOWN = "unknown"


@dataclass(frozen=True)
class FormattedDecisions:
	format: DecisionFormat
	payload: Any


# client key -> DecisionSet field
CLIENT_KEYS = {
	"purposes": "purpose_consents",
	"purposesLI": "purpose_legitimate_interests",
	"vendors": "vendor_consents",
	"vendorsLI": "vendor_legitimate_interests",
	"specialFeatures": "special_feature_optins",
	"publisher": "publisher_consents",
	"publisherLI": "publisher_legitimate_interests",
	"customPurposes": "custom_purpose_consents",
	"customPurposesLI": "custom_purpose_legitimate_interests",
}
CLIENT_REQUIRED = ("purposes", "vendors", "specialFeatures")

# storage list -> (consent field, legitimate-interest field or None)
STORAGE_KEYS = {
	"purposes": ("purpose_consents", "purpose_legitimate_interests"),
	"vendors": ("vendor_consents", "vendor_legitimate_interests"),
	"specialFeatures": ("special_feature_optins", None),
	"publisher": ("publisher_consents", "publisher_legitimate_interests"),
	"customPurposes": ("custom_purpose_consents", "custom_purpose_legitimate_interests"),
}


def detect_format(payload) -> DecisionFormat:
	if not isinstance(payload, dict):
		return DecisionFormat.UNKNOWN
	purpose = payload.get("purpose")
	if isinstance(purpose, dict) and "consents" in purpose:
		return DecisionFormat.WIRE
	purposes = payload.get("purposes")
	if isinstance(purposes, list) and all(
		isinstance(record, dict) and "id" in record and "allowed" in record for record in purposes
	):
		return DecisionFormat.STORAGE
	if isinstance(purposes, dict):
		return DecisionFormat.CLIENT
	return DecisionFormat.UNKNOWN


def _identifier(key, where: str) -> int:
	if isinstance(key, bool):
		raise TranslationError(f"{where}: {key!r} is not an identifier")
	if isinstance(key, str) and key.strip().isdecimal():
		key = int(key)
	if not isinstance(key, int) or key <= 0:
		raise TranslationError(f"{where}: {key!r} is not a positive integer identifier")
	return key


def _flag(value, where: str) -> bool:
	if not isinstance(value, bool):
		raise TranslationError(f"{where}: expected true or false, got {value!r}")
	return value


def _id_map(value, where: str) -> dict:
	if value is None:
		return {}
	if not isinstance(value, dict):
		raise TranslationError(f"{where} must be an object of id -> boolean")
	return {_identifier(k, where): _flag(v, f"{where}.{k}") for k, v in value.items()}


def _section(payload: dict, key: str, where: str) -> dict:
	value = payload.get(key)
	if value is None:
		return {}
	if not isinstance(value, dict):
		raise TranslationError(f"{where}.{key} must be an object")
	return value


def _client_to_mappings(payload) -> dict:
	if not isinstance(payload, dict) or not any(key in payload for key in CLIENT_KEYS):
		raise TranslationError("client decisions need at least one of: " + ", ".join(CLIENT_REQUIRED))
	return {field_name: _id_map(payload.get(key), key) for key, field_name in CLIENT_KEYS.items()}


def _storage_to_mappings(payload) -> dict:
	if not isinstance(payload, dict) or not isinstance(payload.get("purposes"), list):
		raise TranslationError("storage decisions need a `purposes` list")

	mappings = {}
	for key, (consent_field, li_field) in STORAGE_KEYS.items():
		records = payload.get(key) or []
		if not isinstance(records, list):
			raise TranslationError(f"{key} must be a list of records")
		consents, interests = {}, {}
		for position, record in enumerate(records):
			where = f"{key}[{position}]"
			if not isinstance(record, dict) or "id" not in record or "allowed" not in record:
				raise TranslationError(f"{where} must be a record with `id` and `allowed`")
			legal_basis = record.get("legalBasis") or CONSENT
			if legal_basis not in LEGAL_BASES or (li_field is None and legal_basis != CONSENT):
				raise TranslationError(f"{where}: unsupported legalBasis {legal_basis!r}")
			target = interests if legal_basis == LEGITIMATE_INTEREST else consents
			target[_identifier(record["id"], where)] = _flag(record["allowed"], f"{where}.allowed")
		mappings[consent_field] = consents
		if li_field is not None:
			mappings[li_field] = interests
	return mappings


def _wire_to_mappings(payload) -> dict:
	if not isinstance(payload, dict) or not isinstance(payload.get("purpose"), dict):
		raise TranslationError("wire decisions need a `purpose` object")
	purpose = _section(payload, "purpose", "wire")
	vendor = _section(payload, "vendor", "wire")
	publisher = _section(payload, "publisher", "wire")
	custom = _section(publisher, "customPurpose", "wire.publisher")
	return {
		"purpose_consents": _id_map(purpose.get("consents"), "purpose.consents"),
		"purpose_legitimate_interests": _id_map(purpose.get("legitimateInterests"), "purpose.legitimateInterests"),
		"vendor_consents": _id_map(vendor.get("consents"), "vendor.consents"),
		"vendor_legitimate_interests": _id_map(vendor.get("legitimateInterests"), "vendor.legitimateInterests"),
		"special_feature_optins": _id_map(payload.get("specialFeatureOptins"), "specialFeatureOptins"),
		"publisher_consents": _id_map(publisher.get("consents"), "publisher.consents"),
		"publisher_legitimate_interests": _id_map(
			publisher.get("legitimateInterests"), "publisher.legitimateInterests"
		),
		"custom_purpose_consents": _id_map(custom.get("consents"), "publisher.customPurpose.consents"),
		"custom_purpose_legitimate_interests": _id_map(
			custom.get("legitimateInterests"), "publisher.customPurpose.legitimateInterests"
		),
	}


_READERS = {
	DecisionFormat.CLIENT: _client_to_mappings,
	DecisionFormat.STORAGE: _storage_to_mappings,
	DecisionFormat.WIRE: _wire_to_mappings,
}


def to_model(tagged: FormattedDecisions, metadata: DecisionMetadata) -> DecisionSet:
	if tagged.payload is None:
		return DecisionSet.minimal(metadata)
	reader = _READERS.get(DecisionFormat(tagged.format))
	if reader is None:
		raise TranslationError("decisions match none of the client, storage or wire shapes")
	return DecisionSet(metadata=metadata, **reader(tagged.payload))


def to_client(model: DecisionSet) -> dict:
	"""`purposes`, `vendors` and `specialFeatures` are always present, empty when undecided."""
	result = {}
	for key, field_name in CLIENT_KEYS.items():
		mapping = dict(getattr(model, field_name))
		if key in CLIENT_REQUIRED or mapping:
			result[key] = mapping
	return result


def to_wire(model: DecisionSet) -> dict:
	return {
		"purpose": {
			"consents": dict(model.purpose_consents),
			"legitimateInterests": dict(model.purpose_legitimate_interests),
		},
		"vendor": {
			"consents": dict(model.vendor_consents),
			"legitimateInterests": dict(model.vendor_legitimate_interests),
		},
		"specialFeatureOptins": dict(model.special_feature_optins),
		"publisher": {
			"consents": dict(model.publisher_consents),
			"legitimateInterests": dict(model.publisher_legitimate_interests),
			"customPurpose": {
				"consents": dict(model.custom_purpose_consents),
				"legitimateInterests": dict(model.custom_purpose_legitimate_interests),
			},
		},
	}


def to_storage(model: DecisionSet, registry: RegistryReference, custom_purposes=None) -> dict:
	if registry is None:
		raise TranslationError("storage records need a registry reference for display names")
	custom_purposes = custom_purposes or {}
	names = {
		"purposes": lambda i: registry.purpose_name(i) or f"Purpose {i}",
		"vendors": lambda i: registry.vendor_name(i) or f"Vendor {i}",
		"specialFeatures": lambda i: registry.feature_name(i) or f"Feature {i}",
		"publisher": lambda i: registry.purpose_name(i) or f"Purpose {i}",
		"customPurposes": lambda i: custom_purposes.get(i) or f"Custom purpose {i}",
	}

	result = {}
	for key, (consent_field, li_field) in STORAGE_KEYS.items():
		fields = [(consent_field, CONSENT)]
		if li_field is not None:
			fields.append((li_field, LEGITIMATE_INTEREST))
		result[key] = [
			{"id": i, "name": names[key](i), "allowed": allowed, "legalBasis": legal_basis}
			for field_name, legal_basis in fields
			for i, allowed in sorted(getattr(model, field_name).items())
		]
	return result


def from_model(model: DecisionSet, target: DecisionFormat, registry: Optional[RegistryReference] = None, custom_purposes=None):
	target = DecisionFormat(target)
	if target == DecisionFormat.CLIENT:
		return to_client(model)
	if target == DecisionFormat.WIRE:
		return to_wire(model)
	if target == DecisionFormat.STORAGE:
		return to_storage(model, registry, custom_purposes)
	raise TranslationError(f"cannot translate into {target.value} format")


def translate(
		payload,
		source: DecisionFormat,
		target: DecisionFormat,
		registry: Optional[RegistryReference] = None,
		metadata: Optional[DecisionMetadata] = None,
):
	"""Pairwise conversion; `None` payload yields the target's minimal instance."""
	metadata = metadata or DecisionMetadata.from_settings()
	model = to_model(FormattedDecisions(DecisionFormat(source), payload), metadata)
	return from_model(model, target, registry)


def _source_of(payload, source) -> DecisionFormat:
	if source is not None:
		return DecisionFormat(source)
	if payload is None:
		return DecisionFormat.CLIENT
	return detect_format(payload)


def translate_to_client(payload=None, source: Optional[DecisionFormat] = None) -> dict:
	return translate(payload, _source_of(payload, source), DecisionFormat.CLIENT)


def translate_to_wire(payload=None, source: Optional[DecisionFormat] = None) -> dict:
	return translate(payload, _source_of(payload, source), DecisionFormat.WIRE)


def translate_to_storage(payload, registry: RegistryReference, source: Optional[DecisionFormat] = None) -> dict:
	return translate(payload, _source_of(payload, source), DecisionFormat.STORAGE, registry=registry)
