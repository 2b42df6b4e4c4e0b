# proof_codec.py
"""
Groth16 proof <-> compressed wire format.

A proof is (A, B, C) with A, C in G1 and B in G2 over BN254. The on-chain
verifier takes them compressed:

    A: 32 bytes   B: 64 bytes   C: 32 bytes

G1 (x, y)  ->  x as 32 bytes big-endian, top bit of byte 0 set iff y > q // 2
G2 ((x1, x2), (y1, y2))  ->  x2 || x1 (32 bytes each, big-endian), top bit of
    byte 0 set iff s > q // 2 where s = y2, or y1 when y2 == 0

Note the G2 coordinate order: the imaginary part x2 comes FIRST. Getting
this, or the sign rule, wrong produces bytes that decompress to a different
point and every proof is rejected even though it is mathematically valid.
This is an interop contract with the verifier, not a local choice.

q is the BASE field modulus here (coordinates), not the scalar modulus.

Decompression recovers y from the curve equation:
    G1:  y^2 = x^3 + 3                 over Fq
    G2:  y^2 = x^3 + 3 / (9 + u)       over Fq2 = Fq[u] / (u^2 + 1)
and picks whichever of the two roots matches the sign bit.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from py_ecc.optimized_bn128 import FQ, FQ2, b, b2, is_on_curve

from errors import InvalidFieldElement, ProofInvalid
from field_codec import BASE_MODULUS, FIELD_BYTES, from_bytes, parse_field, to_field

G1Affine = Tuple[int, int]
G2Affine = Tuple[Tuple[int, int], Tuple[int, int]]

HALF_BASE = BASE_MODULUS // 2
SIGN_BIT = 0x80

G1_COMPRESSED_BYTES = 32
G2_COMPRESSED_BYTES = 64


# ---------------------------------------------------------------------------
# point helpers
# ---------------------------------------------------------------------------

def g1_on_curve(point: G1Affine) -> bool:
    x, y = point
    return is_on_curve((FQ(x), FQ(y), FQ.one()), b)


def g2_on_curve(point: G2Affine) -> bool:
    (x1, x2), (y1, y2) = point
    return is_on_curve((FQ2([x1, x2]), FQ2([y1, y2]), FQ2.one()), b2)


def _fq2_coeffs(value: FQ2) -> Tuple[int, int]:
    c0, c1 = value.coeffs
    return int(c0) % BASE_MODULUS, int(c1) % BASE_MODULUS


def fq2_sqrt(a: FQ2) -> Optional[FQ2]:
    """
    Square root in Fq2 for q = 3 mod 4, or None if a is not a square.

    Complex method: a1 = a^((q-3)/4), alpha = a1^2 * a, x0 = a1 * a.
    If alpha == -1 the root is u * x0, otherwise (1 + alpha)^((q-1)/2) * x0.
    The result is checked before it is returned.
    """
    if a == FQ2.zero():
        return FQ2.zero()
    a1 = a ** ((BASE_MODULUS - 3) // 4)
    alpha = a1 * a1 * a
    x0 = a1 * a
    if alpha == FQ2([BASE_MODULUS - 1, 0]):
        candidate = FQ2([0, 1]) * x0
    else:
        candidate = ((FQ2.one() + alpha) ** ((BASE_MODULUS - 1) // 2)) * x0
    if candidate * candidate != a:
        return None
    return candidate


def check_g1(point: G1Affine, name: str) -> G1Affine:
    x = to_field(point[0], BASE_MODULUS)
    y = to_field(point[1], BASE_MODULUS)
    if (x, y) == (0, 0) or not g1_on_curve((x, y)):
        raise ProofInvalid(f"{name} is not a point on G1", constraint=f"{name}.on_curve")
    return x, y


def check_g2(point: G2Affine, name: str) -> G2Affine:
    (x1, x2), (y1, y2) = point
    coords = [to_field(v, BASE_MODULUS) for v in (x1, x2, y1, y2)]
    if not any(coords):
        raise ProofInvalid(f"{name} is the point at infinity", constraint=f"{name}.on_curve")
    checked = ((coords[0], coords[1]), (coords[2], coords[3]))
    if not g2_on_curve(checked):
        raise ProofInvalid(f"{name} is not a point on G2", constraint=f"{name}.on_curve")
    return checked


def negate_g1(point: G1Affine) -> G1Affine:
    x, y = point
    return x, (BASE_MODULUS - y) % BASE_MODULUS


# ---------------------------------------------------------------------------
# compression
# ---------------------------------------------------------------------------

def compress_g1(x: int, y: int) -> bytes:
    """
    Compress a G1 point to 32 bytes.

    Raises:
        InvalidFieldElement: coordinate >= q
        ProofInvalid: (x, y) is not on the curve
    """
    x, y = check_g1((x, y), "G1")
    out = bytearray(x.to_bytes(FIELD_BYTES, byteorder="big"))
    if y > HALF_BASE:
        out[0] |= SIGN_BIT
    return bytes(out)


def _g2_sign(y1: int, y2: int) -> bool:
    """Sign flag of an Fq2 ordinate: decided by y2, or by y1 when y2 is zero."""
    if y2 != 0:
        return y2 > HALF_BASE
    return y1 > HALF_BASE


def compress_g2(x1: int, x2: int, y1: int, y2: int) -> bytes:
    """
    Compress a G2 point ((x1, x2), (y1, y2)) to 64 bytes: x2 || x1.
    """
    (x1, x2), (y1, y2) = check_g2(((x1, x2), (y1, y2)), "G2")
    out = bytearray(
        x2.to_bytes(FIELD_BYTES, byteorder="big") + x1.to_bytes(FIELD_BYTES, byteorder="big")
    )
    if _g2_sign(y1, y2):
        out[0] |= SIGN_BIT
    return bytes(out)


def _split_flag(data: bytes, expected: int) -> Tuple[bool, bytes]:
    if len(data) != expected:
        raise InvalidFieldElement(f"expected {expected} compressed bytes, got {len(data)}", data)
    raw = bytearray(data)
    flag = bool(raw[0] & SIGN_BIT)
    raw[0] &= ~SIGN_BIT & 0xFF
    return flag, bytes(raw)


def decompress_g1(data: bytes) -> G1Affine:
    """
    Inverse of compress_g1.

    Raises:
        InvalidFieldElement: wrong length or x >= q
        ProofInvalid: x is not the abscissa of a curve point
    """
    flag, raw = _split_flag(data, G1_COMPRESSED_BYTES)
    x = from_bytes(raw, BASE_MODULUS)
    rhs = (pow(x, 3, BASE_MODULUS) + 3) % BASE_MODULUS
    y = pow(rhs, (BASE_MODULUS + 1) // 4, BASE_MODULUS)
    if (y * y) % BASE_MODULUS != rhs:
        raise ProofInvalid("compressed G1 point is not on the curve", constraint="G1.on_curve")
    if (y > HALF_BASE) != flag:
        y = (BASE_MODULUS - y) % BASE_MODULUS
    return x, y


def decompress_g2(data: bytes) -> G2Affine:
    """
    Inverse of compress_g2, returns ((x1, x2), (y1, y2)).
    """
    flag, raw = _split_flag(data, G2_COMPRESSED_BYTES)
    x2 = from_bytes(raw[:FIELD_BYTES], BASE_MODULUS)
    x1 = from_bytes(raw[FIELD_BYTES:], BASE_MODULUS)

    x = FQ2([x1, x2])
    y = fq2_sqrt(x * x * x + b2)
    if y is None:
        raise ProofInvalid("compressed G2 point is not on the curve", constraint="G2.on_curve")

    y1, y2 = _fq2_coeffs(y)
    if _g2_sign(y1, y2) != flag:
        y1, y2 = (BASE_MODULUS - y1) % BASE_MODULUS, (BASE_MODULUS - y2) % BASE_MODULUS
    return (x1, x2), (y1, y2)


# ---------------------------------------------------------------------------
# uncompressed encodings (verifying-key embedding)
# ---------------------------------------------------------------------------

def g1_to_uncompressed(point: G1Affine) -> bytes:
    """64 bytes: x || y."""
    x, y = check_g1(point, "G1")
    return x.to_bytes(FIELD_BYTES, byteorder="big") + y.to_bytes(FIELD_BYTES, byteorder="big")


def g2_to_uncompressed(point: G2Affine) -> bytes:
    """128 bytes: x2 || x1 || y2 || y1 (extension coordinates reversed)."""
    (x1, x2), (y1, y2) = check_g2(point, "G2")
    return b"".join(v.to_bytes(FIELD_BYTES, byteorder="big") for v in (x2, x1, y2, y1))


def g1_from_uncompressed(data: bytes) -> G1Affine:
    if len(data) != 2 * FIELD_BYTES:
        raise InvalidFieldElement(f"uncompressed G1 must be 64 bytes, got {len(data)}", data)
    x = from_bytes(data[:32], BASE_MODULUS)
    y = from_bytes(data[32:], BASE_MODULUS)
    return check_g1((x, y), "G1")


def g2_from_uncompressed(data: bytes) -> G2Affine:
    if len(data) != 4 * FIELD_BYTES:
        raise InvalidFieldElement(f"uncompressed G2 must be 128 bytes, got {len(data)}", data)
    x2, x1, y2, y1 = (from_bytes(data[i:i + 32], BASE_MODULUS) for i in range(0, 128, 32))
    return check_g2(((x1, x2), (y1, y2)), "G2")


# ---------------------------------------------------------------------------
# proofs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Groth16Proof:
    """Raw proof in affine coordinates, as the prover hands it over."""

    a: G1Affine
    b: G2Affine
    c: G1Affine

    @classmethod
    def from_snarkjs(cls, proof: Mapping[str, Any]) -> "Groth16Proof":
        """
        Parse snarkjs proof.json.

        pi_a / pi_c are [x, y, "1"], pi_b is [[x1, x2], [y1, y2], ["1", "0"]].
        The trailing projective coordinate must be the affine one.
        """
        try:
            pi_a, pi_b, pi_c = proof["pi_a"], proof["pi_b"], proof["pi_c"]
            if len(pi_a) > 2 and parse_field(pi_a[2], BASE_MODULUS) != 1:
                raise InvalidFieldElement("pi_a is not in affine form")
            if len(pi_c) > 2 and parse_field(pi_c[2], BASE_MODULUS) != 1:
                raise InvalidFieldElement("pi_c is not in affine form")
            if len(pi_b) > 2 and [parse_field(v, BASE_MODULUS) for v in pi_b[2]] != [1, 0]:
                raise InvalidFieldElement("pi_b is not in affine form")
            return cls(
                a=(parse_field(pi_a[0], BASE_MODULUS), parse_field(pi_a[1], BASE_MODULUS)),
                b=(
                    (parse_field(pi_b[0][0], BASE_MODULUS), parse_field(pi_b[0][1], BASE_MODULUS)),
                    (parse_field(pi_b[1][0], BASE_MODULUS), parse_field(pi_b[1][1], BASE_MODULUS)),
                ),
                c=(parse_field(pi_c[0], BASE_MODULUS), parse_field(pi_c[1], BASE_MODULUS)),
            )
        except (KeyError, IndexError, TypeError) as exc:
            raise InvalidFieldElement(f"malformed snarkjs proof: {exc}") from exc

    def to_snarkjs(self) -> Dict[str, Any]:
        (bx1, bx2), (by1, by2) = self.b
        return {
            "pi_a": [str(self.a[0]), str(self.a[1]), "1"],
            "pi_b": [[str(bx1), str(bx2)], [str(by1), str(by2)], ["1", "0"]],
            "pi_c": [str(self.c[0]), str(self.c[1]), "1"],
            "protocol": "groth16",
            "curve": "bn128",
        }


@dataclass(frozen=True)
class CompressedProof:
    """Wire form of a Groth16 proof: a (32 bytes), b (64 bytes), c (32 bytes)."""

    a: bytes
    b: bytes
    c: bytes

    def __post_init__(self) -> None:
        for name, value, size in (
            ("a", self.a, G1_COMPRESSED_BYTES),
            ("b", self.b, G2_COMPRESSED_BYTES),
            ("c", self.c, G1_COMPRESSED_BYTES),
        ):
            if len(value) != size:
                raise InvalidFieldElement(f"compressed proof field {name} must be {size} bytes")

    def to_bytes(self) -> bytes:
        return self.a + self.b + self.c

    @classmethod
    def from_bytes(cls, data: bytes) -> "CompressedProof":
        if len(data) != 128:
            raise InvalidFieldElement(f"compressed proof must be 128 bytes, got {len(data)}")
        return cls(a=data[:32], b=data[32:96], c=data[96:])

    def to_dict(self) -> Dict[str, List[int]]:
        # byte arrays, the shape wallets and relayers pass around as JSON
        return {"a": list(self.a), "b": list(self.b), "c": list(self.c)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompressedProof":
        return cls(a=bytes(data["a"]), b=bytes(data["b"]), c=bytes(data["c"]))


def compress_proof(
    proof: Union[Groth16Proof, Mapping[str, Any]],
    negate_a: bool = False,
) -> CompressedProof:
    """
    Compress a raw proof for submission.

    Args:
        proof: Groth16Proof or a snarkjs proof.json mapping
        negate_a: compress -A instead of A, for verifiers that expect the
            negation folded into the proof rather than applying it themselves

    Returns:
        CompressedProof; a pure function of the input
    """
    if not isinstance(proof, Groth16Proof):
        proof = Groth16Proof.from_snarkjs(proof)
    a = negate_g1(proof.a) if negate_a else proof.a
    (bx1, bx2), (by1, by2) = proof.b
    return CompressedProof(
        a=compress_g1(*a),
        b=compress_g2(bx1, bx2, by1, by2),
        c=compress_g1(*proof.c),
    )


def decompress_proof(compressed: CompressedProof) -> Groth16Proof:
    return Groth16Proof(
        a=decompress_g1(compressed.a),
        b=decompress_g2(compressed.b),
        c=decompress_g1(compressed.c),
    )
