"""
TC string assembly and parsing.

A TC string is up to four dot-separated segments, each an independent
base64url (unpadded) encoding of a compact JSON object:

	core . vendorsAllowed . vendorsLegitimateInterest . publisherTC

Bitfields are JSON arrays of 0/1 rather than a packed binary layout; segment
boundaries and round-trip behaviour are what consumers rely on.
"""
from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Optional

from . import bitfield
from .decisions import DecisionMetadata, DecisionSet, to_epoch_ms, from_epoch_ms
from .errors import BitfieldError, ParseError
from .validation import ValidatedDecisions

SEGMENT_NAMES = ("core", "vendorsAllowed", "vendorsLegitimateInterest", "publisherTC")
MAX_SEGMENTS = len(SEGMENT_NAMES)
_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True)
class DecodedSegments:
	core: dict
	vendors_allowed: Optional[dict] = None
	vendors_legitimate_interest: Optional[dict] = None
	publisher: Optional[dict] = None


def encode_segment(payload: dict) -> str:
	raw = json.dumps(payload, separators=(",", ":"), sort_keys=False).encode("utf-8")
	return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_segment(segment: str, index: int) -> dict:
	if not segment:
		raise ParseError("segment is empty", index)
	if not _BASE64URL_RE.match(segment):
		raise ParseError("segment is not base64url", index)
	try:
		raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
		payload = json.loads(raw.decode("utf-8"))
	except (binascii.Error, UnicodeDecodeError, ValueError) as e:
		raise ParseError(f"segment could not be decoded ({e})", index) from e
	if not isinstance(payload, dict):
		raise ParseError("segment does not hold an object", index)
	return payload


def _vendor_segment(mapping) -> dict:
	max_vendor_id = bitfield.vendor_length(mapping)
	return {"maxVendorId": max_vendor_id, "bits": list(bitfield.encode(mapping, max_vendor_id))}


def _custom_length(decisions: DecisionSet) -> int:
	return max(
		bitfield.vendor_length(decisions.custom_purpose_consents),
		bitfield.vendor_length(decisions.custom_purpose_legitimate_interests),
	)


def assemble(validated: ValidatedDecisions) -> str:
	"""Encode a validated decision set as a four-segment TC string."""
	decisions = validated.decisions
	meta = decisions.metadata
	num_custom = _custom_length(decisions)

	segments = (
		{
			"version": meta.tcf_version,
			"created": to_epoch_ms(meta.created),
			"lastUpdated": to_epoch_ms(meta.last_updated),
			"cmpId": meta.cmp_id,
			"cmpVersion": meta.cmp_version,
			"consentScreen": meta.consent_screen,
			"consentLanguage": meta.consent_language,
			"vendorListVersion": meta.vendor_list_version,
			"policyVersion": meta.policy_version,
			"isServiceSpecific": meta.is_service_specific,
			"publisherCC": meta.publisher_cc,
			"purposesConsent": list(bitfield.encode(decisions.purpose_consents, bitfield.PURPOSES_LENGTH)),
			"purposesLegitimateInterest": list(
				bitfield.encode(decisions.purpose_legitimate_interests, bitfield.PURPOSES_LENGTH)
			),
			"specialFeatures": list(
				bitfield.encode(decisions.special_feature_optins, bitfield.SPECIAL_FEATURES_LENGTH)
			),
		},
		_vendor_segment(decisions.vendor_consents),
		_vendor_segment(decisions.vendor_legitimate_interests),
		{
			"publisherConsent": list(
				bitfield.encode(decisions.publisher_consents, bitfield.PUBLISHER_PURPOSES_LENGTH)
			),
			"publisherLegitimateInterests": list(
				bitfield.encode(decisions.publisher_legitimate_interests, bitfield.PUBLISHER_PURPOSES_LENGTH)
			),
			"numCustomPurposes": num_custom,
			"customPurposesConsent": list(bitfield.encode(decisions.custom_purpose_consents, num_custom)),
			"customPurposesLegitimateInterest": list(
				bitfield.encode(decisions.custom_purpose_legitimate_interests, num_custom)
			),
		},
	)
	return ".".join(encode_segment(segment) for segment in segments)


def decode_segments(wire: str) -> DecodedSegments:
	"""Split and decode every segment; any bad segment fails the whole string."""
	if not isinstance(wire, str) or not wire.strip():
		raise ParseError("TC string is empty")

	parts = wire.strip().split(".")
	if len(parts) > MAX_SEGMENTS:
		raise ParseError(f"TC string has {len(parts)} segments, at most {MAX_SEGMENTS} allowed")

	decoded = [decode_segment(part, index) for index, part in enumerate(parts)]
	decoded += [None] * (MAX_SEGMENTS - len(decoded))
	return DecodedSegments(*decoded)


def _field(segment: dict, key: str, expected, index: int):
	value = segment.get(key)
	if isinstance(value, bool) and expected is not bool:
		raise ParseError(f"{key} must be {expected.__name__}", index)
	if not isinstance(value, expected):
		raise ParseError(f"{key} is missing or not {expected.__name__}", index)
	return value


def _bits(segment: dict, key: str, index: int, length: Optional[int] = None) -> dict:
	bits = _field(segment, key, list, index)
	if length is not None and len(bits) != length:
		raise ParseError(f"{key} has {len(bits)} bits, expected {length}", index)
	try:
		return bitfield.decode(bits)
	except BitfieldError as e:
		raise ParseError(f"{key}: {e}", index) from e


def _vendor_bits(segment: Optional[dict], index: int) -> dict:
	if segment is None:
		return {}
	max_vendor_id = _field(segment, "maxVendorId", int, index)
	if max_vendor_id < 0:
		raise ParseError("maxVendorId is negative", index)
	return _bits(segment, "bits", index, max_vendor_id)


def parse(wire: str) -> DecisionSet:
	"""
	Decode a TC string back into a DecisionSet.

	Only granted (True) decisions survive: refusals and missing decisions
	both come back as absent keys.
	"""
	segments = decode_segments(wire)
	core = segments.core

	metadata = DecisionMetadata(
		created=from_epoch_ms(_field(core, "created", int, 0)),
		last_updated=from_epoch_ms(_field(core, "lastUpdated", int, 0)),
		cmp_id=_field(core, "cmpId", int, 0),
		cmp_version=_field(core, "cmpVersion", int, 0),
		policy_version=_field(core, "policyVersion", int, 0),
		is_service_specific=_field(core, "isServiceSpecific", bool, 0),
		publisher_cc=_field(core, "publisherCC", str, 0),
		tcf_version=_field(core, "version", int, 0),
		consent_screen=_field(core, "consentScreen", int, 0),
		consent_language=_field(core, "consentLanguage", str, 0),
		vendor_list_version=_field(core, "vendorListVersion", int, 0),
	)

	publisher = segments.publisher
	publisher_consents = publisher_li = custom_consents = custom_li = {}
	if publisher is not None:
		num_custom = _field(publisher, "numCustomPurposes", int, 3)
		if num_custom < 0:
			raise ParseError("numCustomPurposes is negative", 3)
		publisher_consents = _bits(publisher, "publisherConsent", 3, bitfield.PUBLISHER_PURPOSES_LENGTH)
		publisher_li = _bits(publisher, "publisherLegitimateInterests", 3, bitfield.PUBLISHER_PURPOSES_LENGTH)
		custom_consents = _bits(publisher, "customPurposesConsent", 3, num_custom)
		custom_li = _bits(publisher, "customPurposesLegitimateInterest", 3, num_custom)

	return DecisionSet(
		metadata=metadata,
		purpose_consents=_bits(core, "purposesConsent", 0, bitfield.PURPOSES_LENGTH),
		purpose_legitimate_interests=_bits(core, "purposesLegitimateInterest", 0, bitfield.PURPOSES_LENGTH),
		special_feature_optins=_bits(core, "specialFeatures", 0, bitfield.SPECIAL_FEATURES_LENGTH),
		vendor_consents=_vendor_bits(segments.vendors_allowed, 1),
		vendor_legitimate_interests=_vendor_bits(segments.vendors_legitimate_interest, 2),
		publisher_consents=publisher_consents,
		publisher_legitimate_interests=publisher_li,
		custom_purpose_consents=custom_consents,
		custom_purpose_legitimate_interests=custom_li,
	)
