"""
Read-only snapshot of the Global Vendor List.

A RegistryReference is built once from GVL JSON and then shared freely
between concurrent validations; nothing in it can be mutated.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class PurposeInfo:
	id: int
	name: str
	description: str = ""
	consent_only: bool = False


@dataclass(frozen=True)
class VendorInfo:
	id: int
	name: str
	purpose_ids: frozenset = frozenset()
	legitimate_interest_purpose_ids: frozenset = frozenset()
	flexible_purpose_ids: frozenset = frozenset()
	special_feature_ids: frozenset = frozenset()
	policy_url: str = ""

	@property
	def claims_legitimate_interest(self) -> bool:
		return bool(self.legitimate_interest_purpose_ids)

	def covers_purposes(self, purpose_ids) -> bool:
		"""True when every purpose is declared by the vendor under either legal basis."""
		declared = self.purpose_ids | self.legitimate_interest_purpose_ids
		return all(pid in declared for pid in purpose_ids)


@dataclass(frozen=True)
class FeatureInfo:
	id: int
	name: str
	description: str = ""


def _int_keyed(items) -> Mapping:
	return MappingProxyType({item.id: item for item in items})


@dataclass(frozen=True)
class RegistryReference:
	version: int
	purposes: Mapping[int, PurposeInfo] = field(default_factory=lambda: MappingProxyType({}))
	vendors: Mapping[int, VendorInfo] = field(default_factory=lambda: MappingProxyType({}))
	special_features: Mapping[int, FeatureInfo] = field(default_factory=lambda: MappingProxyType({}))

	@classmethod
	def build(cls, version: int, purposes=(), vendors=(), special_features=()) -> "RegistryReference":
		return cls(
			version=int(version),
			purposes=_int_keyed(purposes),
			vendors=_int_keyed(vendors),
			special_features=_int_keyed(special_features),
		)

	@classmethod
	def from_gvl(cls, data: dict) -> "RegistryReference":
		"""
		Build a reference from Global Vendor List JSON (v2 or v3 layout).

		GVL keys are strings ("1": {...}); vendors flagged with a
		deletedDate are no longer registered and are left out.
		A purpose that no vendor declares under legitimate interest is
		treated as consent-only.
		"""
		vendors = []
		li_purposes = set()
		for raw in (data.get("vendors") or {}).values():
			if raw.get("deletedDate"):
				continue
			vendor = VendorInfo(
				id=int(raw["id"]),
				name=raw.get("name") or f"Vendor {raw['id']}",
				purpose_ids=frozenset(int(p) for p in raw.get("purposes") or []),
				legitimate_interest_purpose_ids=frozenset(int(p) for p in raw.get("legIntPurposes") or []),
				flexible_purpose_ids=frozenset(int(p) for p in raw.get("flexiblePurposes") or []),
				special_feature_ids=frozenset(int(f) for f in raw.get("specialFeatures") or []),
				policy_url=raw.get("policyUrl") or "",
			)
			li_purposes |= vendor.legitimate_interest_purpose_ids
			vendors.append(vendor)

		purposes = [
			PurposeInfo(
				id=int(raw["id"]),
				name=raw.get("name") or f"Purpose {raw['id']}",
				description=raw.get("description") or "",
				consent_only=int(raw["id"]) not in li_purposes,
			)
			for raw in (data.get("purposes") or {}).values()
		]
		features = [
			FeatureInfo(
				id=int(raw["id"]),
				name=raw.get("name") or f"Feature {raw['id']}",
				description=raw.get("description") or "",
			)
			for raw in (data.get("specialFeatures") or {}).values()
		]
		return cls.build(data.get("vendorListVersion", 0), purposes, vendors, features)

	def has_purpose(self, purpose_id: int) -> bool:
		return purpose_id in self.purposes

	def has_vendor(self, vendor_id: int) -> bool:
		return vendor_id in self.vendors

	def has_special_feature(self, feature_id: int) -> bool:
		return feature_id in self.special_features

	def purpose_name(self, purpose_id: int) -> Optional[str]:
		info = self.purposes.get(purpose_id)
		return info.name if info else None

	def vendor_name(self, vendor_id: int) -> Optional[str]:
		info = self.vendors.get(vendor_id)
		return info.name if info else None

	def feature_name(self, feature_id: int) -> Optional[str]:
		info = self.special_features.get(feature_id)
		return info.name if info else None

	def is_consent_only(self, purpose_id: int) -> bool:
		info = self.purposes.get(purpose_id)
		return bool(info and info.consent_only)

	def summary(self) -> dict:
		return {
			"version": self.version,
			"purposes": {pid: p.name for pid, p in sorted(self.purposes.items())},
			"specialFeatures": {fid: f.name for fid, f in sorted(self.special_features.items())},
			"vendorCount": len(self.vendors),
		}
