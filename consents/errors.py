"""
Expected failure conditions of the consent core.

Every error carries a `kind` and enough context for a caller to act on it,
and renders itself with `as_dict()` for API responses.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional


class ConsentError(Exception):
	kind = "ConsentError"

	def as_dict(self) -> dict:
		return {"kind": self.kind, "message": str(self)}


@dataclass(frozen=True)
class UnknownIdentifier:
	"""An identifier that is not in the registry namespace it was used in."""
	namespace: str  # "purposes" | "vendors" | "specialFeatures" | "customPurposes"
	identifier: int
	field: str  # decision mapping the identifier appeared in

	kind = "UnknownIdentifier"

	def as_dict(self) -> dict:
		return {"kind": self.kind, **asdict(self)}

	def __str__(self):
		return f"Unknown {self.namespace} identifier {self.identifier} in {self.field}"


@dataclass(frozen=True)
class InvalidLegalBasis:
	"""A legitimate-interest claim the policy or registry does not permit."""
	namespace: str
	identifier: int
	legal_basis: str
	reason: str

	kind = "InvalidLegalBasis"

	def as_dict(self) -> dict:
		return {"kind": self.kind, **asdict(self)}

	def __str__(self):
		return f"{self.namespace} {self.identifier} cannot use {self.legal_basis}: {self.reason}"


class ValidationFailed(ConsentError):
	kind = "ValidationFailed"

	def __init__(self, errors):
		self.errors = list(errors)
		super().__init__(f"{len(self.errors)} validation error(s): " + "; ".join(str(e) for e in self.errors))

	def as_dict(self) -> dict:
		return {"kind": self.kind, "errors": [e.as_dict() for e in self.errors]}


class ParseError(ConsentError):
	kind = "ParseError"

	def __init__(self, message: str, segment_index: Optional[int] = None):
		self.segment_index = segment_index
		if segment_index is not None:
			message = f"segment {segment_index}: {message}"
		super().__init__(message)

	def as_dict(self) -> dict:
		return {"kind": self.kind, "message": str(self), "segment_index": self.segment_index}


class NotFound(ConsentError):
	kind = "NotFound"


class TranslationError(ConsentError):
	kind = "TranslationError"


class BitfieldError(ConsentError, ValueError):
	kind = "BitfieldError"
