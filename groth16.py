# groth16.py
"""
Groth16 verification over BN254 and the verifying-key artifact.

The verifier accepts (A, B, C) for public inputs x_1..x_n iff

    e(-A, B) * e(alpha, beta) * e(vk_x, gamma) * e(C, delta) == 1
    vk_x = IC_0 + sum(x_i * IC_i)

which is the same equation the on-chain verifier evaluates. The Miller loops
are multiplied first and a single final exponentiation is applied to the
product.

The verifying key is produced by the trusted setup (snarkjs
verification_key.json). Its artifact form carries an explicit version so a
verifier built for one circuit revision never silently accepts keys for
another.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    FQ12,
    add,
    final_exponentiate,
    multiply,
    neg,
    normalize,
    pairing,
)

from errors import ProofInvalid
from field_codec import BASE_MODULUS, SCALAR_MODULUS, parse_field, short_hex, to_field
from proof_codec import (
    G1Affine,
    G2Affine,
    Groth16Proof,
    check_g1,
    check_g2,
    compress_g1,
    compress_g2,
    g1_from_uncompressed,
    g1_to_uncompressed,
    g2_from_uncompressed,
    g2_to_uncompressed,
)

logger = logging.getLogger(__name__)

VK_ARTIFACT_VERSION = "1"

__all__ = [
    "Groth16Proof",
    "VerifyingKey",
    "VerifyingKeyArtifact",
    "VK_ARTIFACT_VERSION",
    "g1_affine",
    "g2_affine",
    "is_valid",
    "verify",
]


# ---------------------------------------------------------------------------
# affine <-> py_ecc projective
# ---------------------------------------------------------------------------

def _g1(point: G1Affine) -> Tuple[FQ, FQ, FQ]:
    return FQ(point[0]), FQ(point[1]), FQ.one()


def _g2(point: G2Affine) -> Tuple[FQ2, FQ2, FQ2]:
    (x1, x2), (y1, y2) = point
    return FQ2([x1, x2]), FQ2([y1, y2]), FQ2.one()


def g1_affine(point: Tuple[FQ, FQ, FQ]) -> G1Affine:
    """py_ecc projective G1 -> (x, y) ints. Infinity has no affine form."""
    if point[2] == FQ.zero():
        raise ProofInvalid("G1 point at infinity", constraint="G1.on_curve")
    x, y = normalize(point)
    return x.n % BASE_MODULUS, y.n % BASE_MODULUS


def g2_affine(point: Tuple[FQ2, FQ2, FQ2]) -> G2Affine:
    if point[2] == FQ2.zero():
        raise ProofInvalid("G2 point at infinity", constraint="G2.on_curve")
    x, y = normalize(point)
    x1, x2 = (int(c) % BASE_MODULUS for c in x.coeffs)
    y1, y2 = (int(c) % BASE_MODULUS for c in y.coeffs)
    return (x1, x2), (y1, y2)


def _snarkjs_g1(value: Sequence[Any]) -> G1Affine:
    return parse_field(value[0], BASE_MODULUS), parse_field(value[1], BASE_MODULUS)


def _snarkjs_g2(value: Sequence[Sequence[Any]]) -> G2Affine:
    return (
        (parse_field(value[0][0], BASE_MODULUS), parse_field(value[0][1], BASE_MODULUS)),
        (parse_field(value[1][0], BASE_MODULUS), parse_field(value[1][1], BASE_MODULUS)),
    )


# ---------------------------------------------------------------------------
# verifying key
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VerifyingKey:
    alpha_g1: G1Affine
    beta_g2: G2Affine
    gamma_g2: G2Affine
    delta_g2: G2Affine
    ic: Tuple[G1Affine, ...]

    @property
    def n_public(self) -> int:
        return len(self.ic) - 1

    @classmethod
    def from_snarkjs(cls, data: Mapping[str, Any]) -> "VerifyingKey":
        """Parse snarkjs verification_key.json (groth16, bn128)."""
        protocol = data.get("protocol", "groth16")
        if protocol != "groth16":
            raise ValueError(f"unsupported proving system: {protocol}")
        vk = cls(
            alpha_g1=check_g1(_snarkjs_g1(data["vk_alpha_1"]), "vk_alpha_1"),
            beta_g2=check_g2(_snarkjs_g2(data["vk_beta_2"]), "vk_beta_2"),
            gamma_g2=check_g2(_snarkjs_g2(data["vk_gamma_2"]), "vk_gamma_2"),
            delta_g2=check_g2(_snarkjs_g2(data["vk_delta_2"]), "vk_delta_2"),
            ic=tuple(check_g1(_snarkjs_g1(p), f"IC[{i}]") for i, p in enumerate(data["IC"])),
        )
        if "nPublic" in data and int(data["nPublic"]) != vk.n_public:
            raise ValueError(f"nPublic {data['nPublic']} does not match {len(vk.ic)} IC points")
        return vk

    def to_snarkjs(self) -> Dict[str, Any]:
        def g1(p: G1Affine) -> List[str]:
            return [str(p[0]), str(p[1]), "1"]

        def g2(p: G2Affine) -> List[List[str]]:
            (x1, x2), (y1, y2) = p
            return [[str(x1), str(x2)], [str(y1), str(y2)], ["1", "0"]]

        return {
            "protocol": "groth16",
            "curve": "bn128",
            "nPublic": self.n_public,
            "vk_alpha_1": g1(self.alpha_g1),
            "vk_beta_2": g2(self.beta_g2),
            "vk_gamma_2": g2(self.gamma_g2),
            "vk_delta_2": g2(self.delta_g2),
            "IC": [g1(p) for p in self.ic],
        }

    @classmethod
    def load(cls, path: str) -> "VerifyingKey":
        with open(path, "r") as f:
            return cls.from_snarkjs(json.load(f))


# ---------------------------------------------------------------------------
# verification
# ---------------------------------------------------------------------------

def verify(vk: VerifyingKey, proof: Groth16Proof, public_inputs: Sequence[int]) -> None:
    """
    Verify a Groth16 proof. Returns None on success.

    Raises:
        InvalidFieldElement: a public input is >= the scalar modulus
        ProofInvalid: wrong input count, a point off the curve, or the
            pairing equation does not hold
    """
    if len(public_inputs) != vk.n_public:
        raise ProofInvalid(
            f"verifying key expects {vk.n_public} public inputs, got {len(public_inputs)}",
            constraint="publicSignals.length",
        )
    inputs = [to_field(x, SCALAR_MODULUS) for x in public_inputs]

    a = _g1(check_g1(proof.a, "A"))
    b = _g2(check_g2(proof.b, "B"))
    c = _g1(check_g1(proof.c, "C"))

    vk_x = _g1(vk.ic[0])
    for x, ic in zip(inputs, vk.ic[1:]):
        if x:
            vk_x = add(vk_x, multiply(_g1(ic), x))

    acc = pairing(b, neg(a), final_exponentiate=False)
    acc = acc * pairing(_g2(vk.beta_g2), _g1(vk.alpha_g1), final_exponentiate=False)
    if vk_x[2] != FQ.zero():
        acc = acc * pairing(_g2(vk.gamma_g2), vk_x, final_exponentiate=False)
    acc = acc * pairing(_g2(vk.delta_g2), c, final_exponentiate=False)

    if final_exponentiate(acc) != FQ12.one():
        logger.debug(f"Pairing check failed for inputs {[short_hex(x) for x in inputs]}")
        raise ProofInvalid("Groth16 pairing check failed", constraint="pairing")


def is_valid(vk: VerifyingKey, proof: Groth16Proof, public_inputs: Sequence[int]) -> bool:
    """Boolean form of verify(); only ProofInvalid maps to False."""
    try:
        verify(vk, proof, public_inputs)
    except ProofInvalid:
        return False
    return True


# ---------------------------------------------------------------------------
# verifying-key artifact
# ---------------------------------------------------------------------------

def _hexify(points: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: [v.hex() for v in value] if key == "ic" else value.hex()
        for key, value in points.items()
    }


def _rust_bytes(data: bytes, indent: str) -> str:
    lines = []
    for i in range(0, len(data), 14):
        chunk = data[i:i + 14]
        lines.append(indent + ", ".join(f"{v}u8" for v in chunk) + ",")
    return "\n".join(lines)


@dataclass(frozen=True)
class VerifyingKeyArtifact:
    """
    Versioned export of a verifying key for the on-chain verifier.

    Carries both encodings: compressed (alpha 32 bytes, beta/gamma/delta 64
    bytes, one 32-byte point per IC entry) and uncompressed (G1 64 bytes
    x || y, G2 128 bytes x2 || x1 || y2 || y1).
    """

    name: str
    vk: VerifyingKey
    version: str = VK_ARTIFACT_VERSION

    @property
    def n_public(self) -> int:
        return self.vk.n_public

    def compressed(self) -> Dict[str, Any]:
        vk = self.vk
        return {
            "alpha_g1": compress_g1(*vk.alpha_g1),
            "beta_g2": compress_g2(*vk.beta_g2[0], *vk.beta_g2[1]),
            "gamma_g2": compress_g2(*vk.gamma_g2[0], *vk.gamma_g2[1]),
            "delta_g2": compress_g2(*vk.delta_g2[0], *vk.delta_g2[1]),
            "ic": [compress_g1(*p) for p in vk.ic],
        }

    def uncompressed(self) -> Dict[str, Any]:
        vk = self.vk
        return {
            "alpha_g1": g1_to_uncompressed(vk.alpha_g1),
            "beta_g2": g2_to_uncompressed(vk.beta_g2),
            "gamma_g2": g2_to_uncompressed(vk.gamma_g2),
            "delta_g2": g2_to_uncompressed(vk.delta_g2),
            "ic": [g1_to_uncompressed(p) for p in vk.ic],
        }

    def to_json(self) -> str:
        return json.dumps(
            {
                "version": self.version,
                "name": self.name,
                "nPublic": self.n_public,
                "compressed": _hexify(self.compressed()),
                "uncompressed": _hexify(self.uncompressed()),
            },
            indent=2,
        )

    @classmethod
    def from_json(cls, text: str) -> "VerifyingKeyArtifact":
        """
        Parse an artifact. The uncompressed points are authoritative; the
        compressed ones must agree with them.
        """
        data = json.loads(text)
        version = str(data.get("version"))
        if version != VK_ARTIFACT_VERSION:
            raise ValueError(
                f"unsupported verifying key artifact version {version!r}, expected {VK_ARTIFACT_VERSION!r}"
            )
        raw = data["uncompressed"]
        vk = VerifyingKey(
            alpha_g1=g1_from_uncompressed(bytes.fromhex(raw["alpha_g1"])),
            beta_g2=g2_from_uncompressed(bytes.fromhex(raw["beta_g2"])),
            gamma_g2=g2_from_uncompressed(bytes.fromhex(raw["gamma_g2"])),
            delta_g2=g2_from_uncompressed(bytes.fromhex(raw["delta_g2"])),
            ic=tuple(g1_from_uncompressed(bytes.fromhex(p)) for p in raw["ic"]),
        )
        artifact = cls(name=data["name"], vk=vk, version=version)
        if int(data["nPublic"]) != artifact.n_public:
            raise ValueError(f"nPublic {data['nPublic']} does not match {len(vk.ic)} IC points")
        if "compressed" in data and data["compressed"] != _hexify(artifact.compressed()):
            raise ValueError("compressed and uncompressed verifying key points disagree")
        return artifact

    def render_rust(self, const_name: str) -> str:
        """Rust source for a `Groth16Verifyingkey` constant (uncompressed points)."""
        points = self.uncompressed()
        ic = "".join(
            f"        [\n{_rust_bytes(p, '            ')}\n        ],\n" for p in points["ic"]
        )
        return (
            "use groth16_solana::groth16::Groth16Verifyingkey;\n"
            "\n"
            f"// {self.name} circuit verifying key, artifact version {self.version}\n"
            f"// Public inputs: {self.n_public}\n"
            f"pub const {const_name}: Groth16Verifyingkey = Groth16Verifyingkey {{\n"
            f"    nr_pubinputs: {self.n_public},\n"
            "\n"
            f"    vk_alpha_g1: [\n{_rust_bytes(points['alpha_g1'], '        ')}\n    ],\n"
            "\n"
            f"    vk_beta_g2: [\n{_rust_bytes(points['beta_g2'], '        ')}\n    ],\n"
            "\n"
            # field name as spelled by the groth16-solana crate
            f"    vk_gamme_g2: [\n{_rust_bytes(points['gamma_g2'], '        ')}\n    ],\n"
            "\n"
            f"    vk_delta_g2: [\n{_rust_bytes(points['delta_g2'], '        ')}\n    ],\n"
            "\n"
            f"    vk_ic: &[\n{ic}    ],\n"
            "};\n"
        )
