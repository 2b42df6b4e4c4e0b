# field_codec.py
"""
Conversions between byte strings / Python ints and canonical field elements.

Two different moduli live in this system and must never be mixed up:

- SCALAR_MODULUS (r): the BN254 scalar field. Every circuit signal, Poseidon
  input/output, commitment, nullifier hash and Merkle root lives here.
- BASE_MODULUS (q): the BN254 base field. Curve point coordinates live here,
  and the compression sign rule in proof_codec.py compares against q // 2.

All public helpers are strict: a value outside [0, modulus) is rejected with
InvalidFieldElement instead of being silently wrapped. Use reduce() when
wrapping is actually what you want (e.g. sampling randomness).
"""

import hashlib
import secrets
from typing import Union

from errors import InvalidFieldElement

# BN254 scalar field modulus (used by Groth16 / circom / snarkjs)
SCALAR_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# BN254 base field modulus (curve coordinates)
BASE_MODULUS = 21888242871839275222246405745257275088696311157297823662689037894645226208583

FIELD_BYTES = 32


def _modulus_name(modulus: int) -> str:
    if modulus == SCALAR_MODULUS:
        return "scalar"
    if modulus == BASE_MODULUS:
        return "base"
    return "custom"


def to_field(value: int, modulus: int = SCALAR_MODULUS) -> int:
    """
    Validate that value is a canonical element of the given field.

    Args:
        value: candidate integer
        modulus: SCALAR_MODULUS (default) or BASE_MODULUS

    Returns:
        the same integer

    Raises:
        InvalidFieldElement: if value is not an int (bools rejected too),
            is negative, or is >= modulus
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldElement(
            f"field element must be an int, got {type(value).__name__}", value
        )
    if value < 0 or value >= modulus:
        raise InvalidFieldElement(
            f"value out of range for {_modulus_name(modulus)} field", value
        )
    return value


def reduce(value: int, modulus: int = SCALAR_MODULUS) -> int:
    """Explicit reduction into [0, modulus)."""
    return value % modulus


def from_bytes(data: bytes, modulus: int = SCALAR_MODULUS) -> int:
    """Decode a 32-byte big-endian encoding, rejecting non-canonical values."""
    if len(data) != FIELD_BYTES:
        raise InvalidFieldElement(
            f"expected {FIELD_BYTES} bytes, got {len(data)}", data
        )
    return to_field(int.from_bytes(data, byteorder="big"), modulus)


def to_bytes(value: int, modulus: int = SCALAR_MODULUS) -> bytes:
    """Encode a field element as 32 bytes big-endian."""
    return to_field(value, modulus).to_bytes(FIELD_BYTES, byteorder="big")


def parse_field(value: Union[int, str, bytes], modulus: int = SCALAR_MODULUS) -> int:
    """
    Accept the encodings that show up at the edges of the system.

    snarkjs and the wallet notes use decimal strings, relayers tend to send
    0x-prefixed hex, ledger accounts hand over 32 raw bytes.
    """
    if isinstance(value, (bytes, bytearray)):
        return from_bytes(bytes(value), modulus)
    if isinstance(value, str):
        text = value.strip().lower()
        try:
            parsed = int(text, 16) if text.startswith("0x") else int(text, 10)
        except ValueError:
            raise InvalidFieldElement(f"not a number: {value!r}", value) from None
        return to_field(parsed, modulus)
    return to_field(value, modulus)


def sha256_to_field(*chunks: bytes) -> int:
    """
    Hash arbitrary bytes into the scalar field.

    SHA-256 over the concatenation, then the first byte is zeroed so the result
    is below 2^248 < r. This is the truncation the on-chain program applies to
    event data and account keys before using them as public inputs.
    """
    h = hashlib.sha256()
    for chunk in chunks:
        h.update(chunk)
    digest = bytearray(h.digest())
    digest[0] = 0
    return int.from_bytes(bytes(digest), byteorder="big")


def address_to_field(address: bytes) -> int:
    """
    Map a 32-byte ledger address to a public signal.

    Addresses that already fit in the field are used as-is (that is what the
    withdraw instruction passes as `recipient`); anything else is hashed.
    """
    if len(address) != FIELD_BYTES:
        raise InvalidFieldElement(
            f"address must be {FIELD_BYTES} bytes, got {len(address)}", address
        )
    as_int = int.from_bytes(address, byteorder="big")
    if as_int < SCALAR_MODULUS:
        return as_int
    return sha256_to_field(address)


def encode_u8_signal(value: int) -> bytes:
    """Small id as a public input: one byte at position 31."""
    if not 0 <= value <= 0xFF:
        raise InvalidFieldElement("u8 signal out of range", value)
    out = bytearray(FIELD_BYTES)
    out[31] = value
    return bytes(out)


def encode_u64_signal(value: int) -> bytes:
    """Unix timestamp style public input: big-endian u64 in bytes 24..32."""
    if not 0 <= value < 2 ** 64:
        raise InvalidFieldElement("u64 signal out of range", value)
    out = bytearray(FIELD_BYTES)
    out[24:32] = value.to_bytes(8, byteorder="big")
    return bytes(out)


def random_field_element() -> int:
    """Random scalar for a nullifier or secret (32 random bytes, reduced)."""
    return reduce(int.from_bytes(secrets.token_bytes(FIELD_BYTES), byteorder="big"))


def short_hex(value: int) -> str:
    """Truncated hex for log lines, never for secrets."""
    text = format(value, "064x")
    return f"0x{text[:8]}..{text[-4:]}"
