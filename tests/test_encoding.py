import pytest

from tokenvm.encoding import address, decode_id, encode_id, parse_address

HRP = "token"


def test_empty_id_encoding():
    assert encode_id(bytes(32)) == "11111111111111111111111111111111LpoYY"


def test_decode_empty_id():
    assert decode_id("11111111111111111111111111111111LpoYY") == bytes(32)


@pytest.mark.parametrize("raw", [bytes(range(32)), b"\xff" * 32, b"\x00" * 31 + b"\x01"])
def test_id_round_trip(raw):
    assert decode_id(encode_id(raw)) == raw


def test_decode_id_bad_checksum():
    text = encode_id(bytes(range(32)))
    broken = text[:-1] + ("2" if text[-1] != "2" else "3")
    with pytest.raises(ValueError):
        decode_id(broken)


def test_decode_id_invalid_character():
    with pytest.raises(ValueError):
        decode_id("0OIl")


def test_encode_id_wrong_length():
    with pytest.raises(ValueError):
        encode_id(bytes(31))


@pytest.mark.parametrize("key", [bytes(32), bytes(range(32)), b"\xab" * 32])
def test_address_round_trip(key):
    text = address(key, HRP)
    assert text.startswith(HRP + "1")
    assert parse_address(text, HRP) == key


def test_parse_address_accepts_upper_case():
    key = bytes(range(32))
    assert parse_address(address(key, HRP).upper(), HRP) == key


def test_parse_address_rejects_mixed_case():
    text = address(bytes(range(32)), HRP)
    mixed = text[:3].upper() + text[3:]
    with pytest.raises(ValueError):
        parse_address(mixed, HRP)


def test_parse_address_wrong_hrp():
    text = address(bytes(32), HRP)
    with pytest.raises(ValueError):
        parse_address(text, "other")


def test_parse_address_bad_checksum():
    text = address(bytes(range(32)), HRP)
    last = "q" if text[-1] != "q" else "p"
    with pytest.raises(ValueError):
        parse_address(text[:-1] + last, HRP)


def test_parse_address_wrong_payload_length():
    # A valid bech32 string with an empty payload.
    with pytest.raises(ValueError):
        parse_address("a12uel5l", "a")


def test_address_wrong_key_length():
    with pytest.raises(ValueError):
        address(bytes(20), HRP)


def test_addresses_differ_for_different_keys():
    assert address(bytes(32), HRP) != address(b"\x01" * 32, HRP)