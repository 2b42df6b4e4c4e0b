"""
Groth16 verifier and verifying-key artifact tests
"""

import json

import pytest

from errors import InvalidFieldElement, ProofInvalid
from field_codec import SCALAR_MODULUS
from groth16 import VK_ARTIFACT_VERSION, VerifyingKey, VerifyingKeyArtifact, is_valid, verify
from proof_codec import Groth16Proof, compress_proof, decompress_proof, negate_g1

INPUTS = [1, 2, 3, 4, 5]


@pytest.fixture(scope="module")
def proof(withdraw_setup) -> Groth16Proof:
    return withdraw_setup.prove_inputs(INPUTS)


class TestVerify:
    """Tests for the pairing check."""

    def test_valid(self, withdraw_setup, proof):
        verify(withdraw_setup.vk, proof, INPUTS)

    def test_survives_compression(self, withdraw_setup, proof):
        """Test the compressed wire form still verifies after decompression."""
        restored = decompress_proof(compress_proof(proof))
        assert is_valid(withdraw_setup.vk, restored, INPUTS)

    def test_wrong_input(self, withdraw_setup, proof):
        with pytest.raises(ProofInvalid) as excinfo:
            verify(withdraw_setup.vk, proof, [1, 2, 3, 4, 6])
        assert excinfo.value.constraint == "pairing"

    def test_negated_a_fails(self, withdraw_setup, proof):
        bad = Groth16Proof(a=negate_g1(proof.a), b=proof.b, c=proof.c)
        assert not is_valid(withdraw_setup.vk, bad, INPUTS)

    def test_other_key_fails(self, innocence_setup, proof):
        assert not is_valid(innocence_setup.vk, proof, INPUTS)

    def test_input_count(self, withdraw_setup, proof):
        with pytest.raises(ProofInvalid) as excinfo:
            verify(withdraw_setup.vk, proof, INPUTS[:4])
        assert excinfo.value.constraint == "publicSignals.length"

    def test_input_out_of_range(self, withdraw_setup, proof):
        with pytest.raises(InvalidFieldElement):
            verify(withdraw_setup.vk, proof, [SCALAR_MODULUS, 2, 3, 4, 5])

    def test_point_off_curve(self, withdraw_setup, proof):
        bad = Groth16Proof(a=(proof.a[0], proof.a[1] ^ 1), b=proof.b, c=proof.c)
        with pytest.raises(ProofInvalid) as excinfo:
            verify(withdraw_setup.vk, bad, INPUTS)
        assert excinfo.value.constraint == "A.on_curve"


class TestVerifyingKey:
    """Tests for snarkjs verifying keys."""

    def test_snarkjs_round_trip(self, withdraw_setup):
        data = withdraw_setup.vk.to_snarkjs()
        assert data["nPublic"] == 5
        assert VerifyingKey.from_snarkjs(data) == withdraw_setup.vk

    def test_npublic_mismatch(self, withdraw_setup):
        data = withdraw_setup.vk.to_snarkjs()
        data["nPublic"] = 4
        with pytest.raises(ValueError):
            VerifyingKey.from_snarkjs(data)

    def test_wrong_protocol(self, withdraw_setup):
        data = withdraw_setup.vk.to_snarkjs()
        data["protocol"] = "plonk"
        with pytest.raises(ValueError):
            VerifyingKey.from_snarkjs(data)

    def test_load(self, withdraw_setup, tmp_path):
        path = tmp_path / "verification_key.json"
        path.write_text(json.dumps(withdraw_setup.vk.to_snarkjs()))
        assert VerifyingKey.load(str(path)) == withdraw_setup.vk


class TestArtifact:
    """Tests for the versioned verifying-key artifact."""

    def test_sizes(self, withdraw_setup):
        artifact = VerifyingKeyArtifact(name="withdraw", vk=withdraw_setup.vk)
        compressed = artifact.compressed()
        assert len(compressed["alpha_g1"]) == 32
        assert len(compressed["beta_g2"]) == 64
        assert len(compressed["ic"]) == 6
        uncompressed = artifact.uncompressed()
        assert len(uncompressed["alpha_g1"]) == 64
        assert len(uncompressed["delta_g2"]) == 128

    def test_json_round_trip(self, withdraw_setup):
        artifact = VerifyingKeyArtifact(name="withdraw", vk=withdraw_setup.vk)
        restored = VerifyingKeyArtifact.from_json(artifact.to_json())
        assert restored == artifact
        assert json.loads(artifact.to_json())["version"] == VK_ARTIFACT_VERSION

    def test_unknown_version(self, withdraw_setup):
        data = json.loads(VerifyingKeyArtifact(name="withdraw", vk=withdraw_setup.vk).to_json())
        data["version"] = "0"
        with pytest.raises(ValueError):
            VerifyingKeyArtifact.from_json(json.dumps(data))

    def test_inconsistent_compressed(self, withdraw_setup):
        data = json.loads(VerifyingKeyArtifact(name="withdraw", vk=withdraw_setup.vk).to_json())
        data["compressed"]["ic"][0] = data["compressed"]["ic"][1]
        with pytest.raises(ValueError):
            VerifyingKeyArtifact.from_json(json.dumps(data))

    def test_render_rust(self, withdraw_setup):
        source = VerifyingKeyArtifact(name="withdraw", vk=withdraw_setup.vk).render_rust(
            "VERIFYINGKEY_WITHDRAW"
        )
        assert "pub const VERIFYINGKEY_WITHDRAW: Groth16Verifyingkey" in source
        assert "nr_pubinputs: 5," in source
        assert source.count("u8") >= 64 + 3 * 128 + 6 * 64
