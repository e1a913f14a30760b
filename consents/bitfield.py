"""
Identifier -> bool mappings as ordered bit sequences.

Bit i (1-indexed) stands for identifier i. Only an explicit True sets a bit,
so an absent key and a False value encode identically. Decoding therefore
returns only the True entries: "explicitly refused" and "never asked" cannot
be told apart once a mapping has been through a bitfield. Callers that need
the difference must keep it in the DecisionSet, not in the wire string.
"""
from __future__ import annotations

from typing import Mapping, Sequence

from .errors import BitfieldError

# Fixed segment sizes used by the wire string
PURPOSES_LENGTH = 24
SPECIAL_FEATURES_LENGTH = 12
PUBLISHER_PURPOSES_LENGTH = 24


def encode(mapping: Mapping[int, bool], length: int) -> tuple[int, ...]:
	if length < 0:
		raise BitfieldError(f"Bitfield length must not be negative (got {length})")

	bits = [0] * length
	for identifier, allowed in (mapping or {}).items():
		if isinstance(identifier, bool) or not isinstance(identifier, int):
			raise BitfieldError(f"Identifier {identifier!r} is not an integer")
		if identifier <= 0:
			raise BitfieldError(f"Identifier {identifier} is not positive")
		if identifier > length:
			raise BitfieldError(f"Identifier {identifier} does not fit a bitfield of length {length}")
		if allowed is True:
			bits[identifier - 1] = 1
	return tuple(bits)


def decode(bits: Sequence[int]) -> dict[int, bool]:
	decoded = {}
	for index, bit in enumerate(bits):
		if bit not in (0, 1) or isinstance(bit, bool):
			raise BitfieldError(f"Bit {index + 1} is {bit!r}, expected 0 or 1")
		if bit == 1:
			decoded[index + 1] = True
	return decoded


def vendor_length(mapping: Mapping[int, bool]) -> int:
	"""Vendor segments are sized by the highest vendor id present, not a constant."""
	return max(mapping.keys(), default=0)
