"""
Proof compression tests
"""

import pytest
from py_ecc.optimized_bn128 import G1, G2, multiply

from errors import InvalidFieldElement, ProofInvalid
from field_codec import BASE_MODULUS
from groth16 import g1_affine, g2_affine
from proof_codec import (
    HALF_BASE,
    CompressedProof,
    _g2_sign,
    Groth16Proof,
    compress_g1,
    compress_g2,
    compress_proof,
    decompress_g1,
    decompress_g2,
    decompress_proof,
    g1_from_uncompressed,
    g1_to_uncompressed,
    g2_from_uncompressed,
    g2_to_uncompressed,
    negate_g1,
)


def g1_points(count):
    return [g1_affine(multiply(G1, k)) for k in range(1, count + 1)]


def g2_points(count):
    return [g2_affine(multiply(G2, k)) for k in range(1, count + 1)]


@pytest.fixture(scope="module")
def sample_proof() -> Groth16Proof:
    return Groth16Proof(
        a=g1_affine(multiply(G1, 7)),
        b=g2_affine(multiply(G2, 11)),
        c=g1_affine(multiply(G1, 13)),
    )


class TestG1:
    """Tests for G1 compression."""

    def test_round_trip_both_signs(self):
        """Test P and -P both survive compression, covering both sign branches."""
        signs = set()
        for point in g1_points(4):
            for p in (point, negate_g1(point)):
                encoded = compress_g1(*p)
                assert len(encoded) == 32
                assert decompress_g1(encoded) == p
                signs.add(bool(encoded[0] & 0x80))
        assert signs == {True, False}

    def test_sign_bit_rule(self):
        x, y = g1_affine(multiply(G1, 5))
        encoded = compress_g1(x, y)
        assert bool(encoded[0] & 0x80) == (y > HALF_BASE)
        stripped = bytes([encoded[0] & 0x7F]) + encoded[1:]
        assert int.from_bytes(stripped, "big") == x

    def test_generator(self):
        """Test G1 = (1, 2) compresses to x = 1 with the sign bit clear."""
        assert compress_g1(1, 2) == bytes(31) + b"\x01"

    def test_off_curve_rejected(self):
        with pytest.raises(ProofInvalid):
            compress_g1(1, 3)

    def test_infinity_rejected(self):
        with pytest.raises(ProofInvalid):
            compress_g1(0, 0)

    def test_coordinate_out_of_range(self):
        with pytest.raises(InvalidFieldElement):
            compress_g1(BASE_MODULUS, 2)

    def test_decompress_wrong_length(self):
        with pytest.raises(InvalidFieldElement):
            decompress_g1(bytes(31))

    def test_decompress_not_on_curve(self):
        """Test an x for which x^3 + 3 is not a square is rejected."""
        x = 2
        while pow((x ** 3 + 3) % BASE_MODULUS, (BASE_MODULUS - 1) // 2, BASE_MODULUS) == 1:
            x += 1
        with pytest.raises(ProofInvalid):
            decompress_g1(x.to_bytes(32, "big"))


class TestG2:
    """Tests for G2 compression."""

    def test_round_trip_both_signs(self):
        signs = set()
        for point in g2_points(3):
            (x1, x2), (y1, y2) = point
            negated = ((x1, x2), ((BASE_MODULUS - y1) % BASE_MODULUS, (BASE_MODULUS - y2) % BASE_MODULUS))
            for p in (point, negated):
                (px1, px2), (py1, py2) = p
                encoded = compress_g2(px1, px2, py1, py2)
                assert len(encoded) == 64
                assert decompress_g2(encoded) == p
                signs.add(bool(encoded[0] & 0x80))
        assert signs == {True, False}

    def test_coordinate_order(self):
        """Test the imaginary part x2 comes first."""
        (x1, x2), (y1, y2) = g2_affine(multiply(G2, 3))
        encoded = compress_g2(x1, x2, y1, y2)
        assert int.from_bytes(encoded[32:], "big") == x1
        assert int.from_bytes(bytes([encoded[0] & 0x7F]) + encoded[1:32], "big") == x2
        assert bool(encoded[0] & 0x80) == (y2 > HALF_BASE)

    def test_off_curve_rejected(self):
        (x1, x2), (y1, y2) = g2_affine(multiply(G2, 3))
        with pytest.raises(ProofInvalid):
            compress_g2(x1, x2, y1, (y2 + 1) % BASE_MODULUS)

    def test_decompress_wrong_length(self):
        with pytest.raises(InvalidFieldElement):
            decompress_g2(bytes(63))


class TestG2Sign:
    """Tests for the G2 sign flag rule."""

    def test_decided_by_y2(self):
        assert _g2_sign(1, HALF_BASE + 1) is True
        assert _g2_sign(BASE_MODULUS - 1, 1) is False

    def test_falls_back_to_y1_when_y2_zero(self):
        assert _g2_sign(HALF_BASE + 1, 0) is True
        assert _g2_sign(HALF_BASE, 0) is False

    def test_half_is_not_high(self):
        assert _g2_sign(0, HALF_BASE) is False


class TestUncompressed:
    """Tests for verifying-key point encodings."""

    def test_g1_layout(self):
        x, y = g1_affine(multiply(G1, 9))
        raw = g1_to_uncompressed((x, y))
        assert raw == x.to_bytes(32, "big") + y.to_bytes(32, "big")
        assert g1_from_uncompressed(raw) == (x, y)

    def test_g2_layout(self):
        point = g2_affine(multiply(G2, 9))
        (x1, x2), (y1, y2) = point
        raw = g2_to_uncompressed(point)
        assert raw == b"".join(v.to_bytes(32, "big") for v in (x2, x1, y2, y1))
        assert g2_from_uncompressed(raw) == point


class TestCompressedProof:
    """Tests for whole-proof compression."""

    def test_round_trip(self, sample_proof):
        compressed = compress_proof(sample_proof)
        assert len(compressed.to_bytes()) == 128
        assert decompress_proof(compressed) == sample_proof

    def test_pure(self, sample_proof):
        assert compress_proof(sample_proof) == compress_proof(sample_proof)

    def test_negate_a(self, sample_proof):
        """Test negate_a compresses -A and leaves B and C alone."""
        plain = compress_proof(sample_proof)
        negated = compress_proof(sample_proof, negate_a=True)
        assert negated.a != plain.a
        assert negated.a[1:] == plain.a[1:]
        assert negated.b == plain.b and negated.c == plain.c
        assert decompress_proof(negated).a == negate_g1(sample_proof.a)

    def test_from_snarkjs(self, sample_proof):
        data = sample_proof.to_snarkjs()
        assert compress_proof(data) == compress_proof(sample_proof)

    def test_snarkjs_not_affine(self, sample_proof):
        data = sample_proof.to_snarkjs()
        data["pi_a"][2] = "2"
        with pytest.raises(InvalidFieldElement):
            Groth16Proof.from_snarkjs(data)

    def test_snarkjs_malformed(self):
        with pytest.raises(InvalidFieldElement):
            Groth16Proof.from_snarkjs({"pi_a": ["1"]})

    def test_bytes_and_dict(self, sample_proof):
        compressed = compress_proof(sample_proof)
        assert CompressedProof.from_bytes(compressed.to_bytes()) == compressed
        assert CompressedProof.from_dict(compressed.to_dict()) == compressed

    def test_bad_lengths(self):
        with pytest.raises(InvalidFieldElement):
            CompressedProof(a=bytes(31), b=bytes(64), c=bytes(32))
        with pytest.raises(InvalidFieldElement):
            CompressedProof.from_bytes(bytes(127))
