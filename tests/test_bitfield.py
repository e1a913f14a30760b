import pytest

from consents import bitfield
from consents.errors import BitfieldError


def test_identifier_n_sets_last_bit_only():
	for n in (1, 5, 24):
		bits = bitfield.encode({n: True}, n)
		assert len(bits) == n
		assert bits[n - 1] == 1
		assert sum(bits) == 1


def test_false_and_absent_encode_the_same():
	assert bitfield.encode({1: True, 2: False}, 4) == bitfield.encode({1: True}, 4) == (1, 0, 0, 0)


def test_empty_mapping_encodes_zeros():
	assert bitfield.encode({}, 3) == (0, 0, 0)
	assert bitfield.encode({}, 0) == ()


@pytest.mark.parametrize("identifier", [0, -1, -24])
def test_non_positive_identifiers_rejected(identifier):
	with pytest.raises(BitfieldError):
		bitfield.encode({identifier: True}, 24)


def test_identifier_beyond_length_rejected():
	with pytest.raises(BitfieldError):
		bitfield.encode({25: True}, bitfield.PURPOSES_LENGTH)


def test_negative_length_rejected():
	with pytest.raises(BitfieldError):
		bitfield.encode({}, -1)


def test_non_integer_identifiers_rejected():
	with pytest.raises(BitfieldError):
		bitfield.encode({"1": True}, 4)
	with pytest.raises(BitfieldError):
		bitfield.encode({True: True}, 4)


def test_decode_returns_only_granted_ids():
	assert bitfield.decode([1, 0, 1, 0]) == {1: True, 3: True}
	assert bitfield.decode([]) == {}


def test_decode_drops_explicit_false():
	decoded = bitfield.decode(bitfield.encode({1: True, 2: False}, 2))
	assert decoded == {1: True}
	assert 2 not in decoded


@pytest.mark.parametrize("bits", [[0, 2], [1, -1], ["1"], [True, False]])
def test_decode_rejects_non_binary_values(bits):
	with pytest.raises(BitfieldError):
		bitfield.decode(bits)


def test_bitfield_error_is_a_value_error():
	assert issubclass(BitfieldError, ValueError)


def test_vendor_length_is_highest_id():
	assert bitfield.vendor_length({}) == 0
	assert bitfield.vendor_length({3: True, 755: False, 12: True}) == 755
