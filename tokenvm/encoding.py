"""Textual encodings for public keys (bech32 addresses) and IDs (cb58)."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

PUBLIC_KEY_LEN = 32
ID_LEN = 32

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_BECH32_MAX_LEN = 90
_BECH32_CHECKSUM_LEN = 6

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_INDEX = {char: index for index, char in enumerate(_BASE58_ALPHABET)}
_CB58_CHECKSUM_LEN = 4


def _polymod(values: Iterable[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = ((checksum & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_BECH32_GENERATORS):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _create_checksum(hrp: str, data: list[int]) -> list[int]:
    polymod = _polymod(_hrp_expand(hrp) + data + [0] * _BECH32_CHECKSUM_LEN) ^ 1
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(_BECH32_CHECKSUM_LEN)]


def _convert_bits(data: Iterable[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    max_value = (1 << to_bits) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise ValueError(f"invalid data value {value}")
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & max_value)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & max_value)
    elif bits >= from_bits or (acc << (to_bits - bits)) & max_value:
        raise ValueError("invalid padding in bech32 data")
    return out


def _bech32_encode(hrp: str, payload: bytes) -> str:
    data = _convert_bits(payload, 8, 5, True)
    combined = data + _create_checksum(hrp, data)
    return hrp + "1" + "".join(_BECH32_CHARSET[d] for d in combined)


def _bech32_decode(text: str) -> tuple[str, bytes]:
    if len(text) > _BECH32_MAX_LEN:
        raise ValueError(f"bech32 string too long ({len(text)} > {_BECH32_MAX_LEN})")
    if any(ord(c) < 33 or ord(c) > 126 for c in text):
        raise ValueError("bech32 string contains invalid characters")
    if text.lower() != text and text.upper() != text:
        raise ValueError("bech32 string uses mixed case")
    text = text.lower()
    separator = text.rfind("1")
    if separator < 1 or separator + _BECH32_CHECKSUM_LEN + 1 > len(text):
        raise ValueError("invalid bech32 separator position")
    hrp = text[:separator]
    try:
        data = [_BECH32_CHARSET.index(c) for c in text[separator + 1 :]]
    except ValueError:
        raise ValueError("bech32 string contains a character outside the charset") from None
    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise ValueError("invalid bech32 checksum")
    payload = _convert_bits(data[:-_BECH32_CHECKSUM_LEN], 5, 8, False)
    return hrp, bytes(payload)


def address(public_key: bytes, hrp: str) -> str:
    """Format a public key as a bech32 address with the given human-readable part."""
    key = bytes(public_key)
    if len(key) != PUBLIC_KEY_LEN:
        raise ValueError(f"public key must be {PUBLIC_KEY_LEN} bytes, got {len(key)}")
    return _bech32_encode(hrp, key)


def parse_address(text: str, hrp: str) -> bytes:
    """Parse a bech32 address and return the public key it holds."""
    found_hrp, payload = _bech32_decode(text)
    if found_hrp != hrp:
        raise ValueError(f"expected hrp {hrp!r}, found {found_hrp!r}")
    if len(payload) != PUBLIC_KEY_LEN:
        raise ValueError(
            f"incorrect public key length: expected {PUBLIC_KEY_LEN}, got {len(payload)}"
        )
    return payload


def _base58_encode(raw: bytes) -> str:
    number = int.from_bytes(raw, "big")
    chars: list[str] = []
    while number:
        number, remainder = divmod(number, 58)
        chars.append(_BASE58_ALPHABET[remainder])
    leading = len(raw) - len(raw.lstrip(b"\x00"))
    return "1" * leading + "".join(reversed(chars))


def _base58_decode(text: str) -> bytes:
    number = 0
    for char in text:
        try:
            number = number * 58 + _BASE58_INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character {char!r}") from None
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    leading = len(text) - len(text.lstrip("1"))
    return b"\x00" * leading + body


def _checksum(raw: bytes) -> bytes:
    return hashlib.sha256(raw).digest()[-_CB58_CHECKSUM_LEN:]


def encode_id(raw: bytes) -> str:
    """Encode a 32-byte ID as a cb58 string."""
    value = bytes(raw)
    if len(value) != ID_LEN:
        raise ValueError(f"ID must be {ID_LEN} bytes, got {len(value)}")
    return _base58_encode(value + _checksum(value))


def decode_id(text: str) -> bytes:
    """Decode a cb58 string into a 32-byte ID."""
    decoded = _base58_decode(text)
    if len(decoded) < _CB58_CHECKSUM_LEN:
        raise ValueError("cb58 input is too short")
    value, checksum = decoded[:-_CB58_CHECKSUM_LEN], decoded[-_CB58_CHECKSUM_LEN:]
    if _checksum(value) != checksum:
        raise ValueError("invalid cb58 checksum")
    if len(value) != ID_LEN:
        raise ValueError(f"ID must be {ID_LEN} bytes, got {len(value)}")
    return value