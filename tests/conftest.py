"""
Shielded pool test fixtures
"""

import random
from typing import List, Sequence

import pytest
from py_ecc.optimized_bn128 import G1, G2, curve_order, multiply

from commitment import DepositNote
from config import ProtocolConfig, TreeConfig
from groth16 import VerifyingKey, g1_affine, g2_affine
from merkle_tree import MerkleTree
from proof_codec import Groth16Proof

TEST_DEPTH = 4


class TrapdoorSetup:
    """
    Groth16 "setup" whose toxic waste we keep.

    Knowing alpha, beta, gamma, delta and the IC scalars lets us solve the
    verification equation for C directly, so pairing checks and tamper tests
    run without circom or snarkjs. prove() only issues a proof for a
    statement whose constraints hold, which is all a real prover would do.
    """

    def __init__(self, n_public: int, seed: int) -> None:
        self.rng = random.Random(seed)
        r = curve_order
        self.alpha, self.beta, self.gamma, self.delta = (self.rng.randrange(1, r) for _ in range(4))
        self.ic_scalars = [self.rng.randrange(1, r) for _ in range(n_public + 1)]
        self.vk = VerifyingKey(
            alpha_g1=g1_affine(multiply(G1, self.alpha)),
            beta_g2=g2_affine(multiply(G2, self.beta)),
            gamma_g2=g2_affine(multiply(G2, self.gamma)),
            delta_g2=g2_affine(multiply(G2, self.delta)),
            ic=tuple(g1_affine(multiply(G1, u)) for u in self.ic_scalars),
        )

    def prove_inputs(self, inputs: Sequence[int]) -> Groth16Proof:
        r = curve_order
        a = self.rng.randrange(1, r)
        b = self.rng.randrange(1, r)
        s = (self.ic_scalars[0] + sum(x * u for x, u in zip(inputs, self.ic_scalars[1:]))) % r
        c = (a * b - self.alpha * self.beta - s * self.gamma) * pow(self.delta, -1, r) % r
        return Groth16Proof(
            a=g1_affine(multiply(G1, a)),
            b=g2_affine(multiply(G2, b)),
            c=g1_affine(multiply(G1, c)),
        )

    def prove(self, statement) -> Groth16Proof:
        statement.check()
        return self.prove_inputs(statement.public_inputs())


@pytest.fixture(scope="session")
def withdraw_setup() -> TrapdoorSetup:
    """Trapdoor setup with the withdraw circuit's 5 public inputs."""
    return TrapdoorSetup(n_public=5, seed=1)


@pytest.fixture(scope="session")
def innocence_setup() -> TrapdoorSetup:
    """Trapdoor setup with the innocence circuit's 5 public inputs."""
    return TrapdoorSetup(n_public=5, seed=2)


@pytest.fixture
def depth() -> int:
    return TEST_DEPTH


@pytest.fixture(scope="session")
def notes() -> List[DepositNote]:
    """Deterministic deposit notes."""
    return [
        DepositNote.from_secrets(
            nullifier=1000 + i,
            secret=2000 + i,
            amount=1_000_000,
            timestamp=1_700_000_000_000 + i,
        )
        for i in range(6)
    ]


@pytest.fixture
def tree(notes) -> MerkleTree:
    """Depth-4 tree holding every note's commitment in order."""
    return MerkleTree([n.commitment for n in notes], TEST_DEPTH)


@pytest.fixture
def small_config() -> ProtocolConfig:
    return ProtocolConfig(tree=TreeConfig(depth=TEST_DEPTH, root_history_size=4))
