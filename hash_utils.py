# hash_utils.py
"""
Poseidon hashing over the BN254 scalar field.

One primitive serves every hashing need of the pool:
1. Commitments:      Poseidon(nullifier, secret)   (arity 2, t=3)
2. Nullifier hashes: Poseidon(nullifier)           (arity 1, t=2)
3. Merkle nodes:     Poseidon(left, right)         (arity 2, t=3)

The permutation and its constants come from circomlibpy, a port of
circomlibjs' poseidon_opt, so off-circuit tree building and witness
construction agree with the circom Poseidon templates bit for bit.
"""

from functools import lru_cache
from typing import Sequence, Tuple

from circomlibpy.poseidon import N_ROUNDS_P, PoseidonHash

from field_codec import to_field

# circomlib ships constants for t = 2 .. 17
MAX_ARITY = len(N_ROUNDS_P)

_hasher = PoseidonHash()


def poseidon_hash(inputs: Sequence[int]) -> int:
    """
    Poseidon hash of 1..MAX_ARITY field elements.

    Args:
        inputs: canonical scalar field elements (not reduced for you)

    Returns:
        integer in [0, SCALAR_MODULUS)

    Raises:
        InvalidFieldElement: if any input is out of range
        ValueError: for an unsupported number of inputs
    """
    if len(inputs) == 0 or len(inputs) > MAX_ARITY:
        raise ValueError(f"Poseidon supports 1..{MAX_ARITY} inputs, got {len(inputs)}")

    values = [to_field(v) for v in inputs]
    return _hasher.hash(len(values), values)


def merkle_hash2(left: int, right: int) -> int:
    """
    Merkle parent hash for arity=2.

    Same Poseidon(left, right) the withdraw and innocence circuits apply at
    every level, so roots built here are the roots the circuits re-derive.
    """
    return poseidon_hash([left, right])


@lru_cache(maxsize=None)
def zero_hashes(depth: int) -> Tuple[int, ...]:
    """
    Roots of all-zero subtrees: zeros[0] = 0, zeros[i+1] = H(zeros[i], zeros[i]).

    zeros[depth] is the root of an empty tree of that depth.
    """
    zeros = [0]
    for _ in range(depth):
        zeros.append(merkle_hash2(zeros[-1], zeros[-1]))
    return tuple(zeros)
