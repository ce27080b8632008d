"""
Key and Identifier Codec

Bech32 (NIP-19) conversions between human-facing identifiers and the raw
64-hex form the admission core works with.

- npub  <-> hex public key
- note  <-  hex event id
- nevent <- hex event id + relay hints (TLV)

Only this module knows about bech32. Everything upstream sees raw hex.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Tuple
import re

from ..contracts.base import KeyDecodeError


HEX64 = re.compile(r'^[0-9a-f]{64}$')

# nevent TLV types
_TLV_SPECIAL = 0
_TLV_RELAY = 1
_TLV_AUTHOR = 2
_TLV_KIND = 3

DEFAULT_NEVENT_RELAYS = ('wss://relay.damus.io', 'wss://relay.primal.net')


# =============================================================================
# BECH32 (BIP-173)
# =============================================================================

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3b6a57b2, 0x26508e6d, 0x1ea119fa, 0x3d4233dd, 0x2a1462b3)


def _polymod(values: Iterable[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1ffffff) << 5 ^ value
        for i in range(5):
            chk ^= _GENERATOR[i] if ((top >> i) & 1) else 0
    return chk


def _hrp_expand(hrp: str) -> List[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def bech32_encode(hrp: str, data: List[int]) -> str:
    values = _hrp_expand(hrp) + data
    polymod = _polymod(values + [0] * 6) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(CHARSET[d] for d in data + checksum)


def bech32_decode(value: str) -> Tuple[Optional[str], Optional[List[int]]]:
    """
    (hrp, data words) or (None, None) when the string is not valid bech32.

    No length cap: TLV identifiers such as nevent exceed the 90 characters
    allowed for segwit addresses.
    """
    if any(ord(c) < 33 or ord(c) > 126 for c in value):
        return None, None
    if value.lower() != value and value.upper() != value:
        return None, None
    value = value.lower()
    pos = value.rfind("1")
    if pos < 1 or pos + 7 > len(value):
        return None, None
    if not all(c in CHARSET for c in value[pos + 1:]):
        return None, None
    hrp = value[:pos]
    data = [CHARSET.find(c) for c in value[pos + 1:]]
    if _polymod(_hrp_expand(hrp) + data) != 1:
        return None, None
    return hrp, data[:-6]


def convertbits(data: Iterable[int], frombits: int, tobits: int, pad: bool = True) -> Optional[List[int]]:
    """Regroup a bit stream; None on invalid padding or out-of-range input."""
    acc = 0
    bits = 0
    result: List[int] = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1
    for value in data:
        if value < 0 or (value >> frombits):
            return None
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            result.append((acc >> bits) & maxv)
    if pad:
        if bits:
            result.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        return None
    return result


def _encode(hrp: str, payload: bytes) -> str:
    words = convertbits(payload, 8, 5, True)
    return bech32_encode(hrp, words)


def _decode(value: str) -> Tuple[str, bytes]:
    hrp, words = bech32_decode(value.strip())
    if hrp is None or words is None:
        raise KeyDecodeError(f"Not a valid bech32 string: {value[:12]}...")
    payload = convertbits(words, 5, 8, False)
    if payload is None:
        raise KeyDecodeError(f"Invalid bech32 payload padding: {value[:12]}...")
    return hrp, bytes(payload)


def _require_hex(value: str, what: str) -> bytes:
    if not isinstance(value, str) or not HEX64.match(value.lower()):
        raise KeyDecodeError(f"{what} must be 64 hex characters")
    return bytes.fromhex(value)


# =============================================================================
# PUBLIC KEYS
# =============================================================================

def npub_encode(pubkey_hex: str) -> str:
    return _encode('npub', _require_hex(pubkey_hex, "Public key"))


def npub_decode(npub: str) -> str:
    hrp, payload = _decode(npub)
    if hrp != 'npub':
        raise KeyDecodeError(f"Expected an npub, got prefix '{hrp}'")
    if len(payload) != 32:
        raise KeyDecodeError("npub payload must be 32 bytes")
    return payload.hex()


def normalize_pubkey(value: str) -> str:
    """
    Accept hex or npub and return lowercase 64-hex.

    Raises KeyDecodeError for anything else.
    """
    if not isinstance(value, str) or not value.strip():
        raise KeyDecodeError("Public key is empty")
    value = value.strip()
    if value.lower().startswith('npub'):
        return npub_decode(value)
    _require_hex(value, "Public key")
    return value.lower()


def try_npub(pubkey_hex: Optional[str]) -> Optional[str]:
    """npub for display, or None when the input is not a valid key."""
    if not pubkey_hex:
        return None
    try:
        return npub_encode(pubkey_hex)
    except KeyDecodeError:
        return None


# =============================================================================
# EVENT IDENTIFIERS
# =============================================================================

def note_encode(event_id_hex: str) -> str:
    return _encode('note', _require_hex(event_id_hex, "Event id"))


def note_decode(note: str) -> str:
    hrp, payload = _decode(note)
    if hrp != 'note' or len(payload) != 32:
        raise KeyDecodeError("Not a valid note identifier")
    return payload.hex()


def nevent_encode(
    event_id_hex: str,
    relays: Iterable[str] = DEFAULT_NEVENT_RELAYS,
    author_hex: Optional[str] = None,
    kind: Optional[int] = None,
) -> str:
    """Encode an event pointer with relay hints as TLV."""
    tlv: List[bytes] = [_tlv(_TLV_SPECIAL, _require_hex(event_id_hex, "Event id"))]
    for relay in relays:
        tlv.append(_tlv(_TLV_RELAY, relay.encode('utf-8')))
    if author_hex:
        tlv.append(_tlv(_TLV_AUTHOR, _require_hex(author_hex, "Author")))
    if kind is not None:
        tlv.append(_tlv(_TLV_KIND, kind.to_bytes(4, 'big')))
    return _encode('nevent', b''.join(tlv))


def _tlv(tag: int, value: bytes) -> bytes:
    if len(value) > 255:
        raise KeyDecodeError("TLV value too long")
    return bytes((tag, len(value))) + value


def key_report(value: str) -> Tuple[str, str]:
    """(hex, npub) for any accepted public key form."""
    hex_key = normalize_pubkey(value)
    return hex_key, npub_encode(hex_key)
