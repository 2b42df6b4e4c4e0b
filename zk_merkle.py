# zk_merkle.py
"""
Merkle opening verification as a constraint predicate.

Given a leaf and an opening (siblings + positions) we recompute the root the
same way the circuit does and enforce that it equals a public root. Both
circuit specs (withdraw_circuit.py, innocence_circuit.py) call this once per
tree they authenticate against.

Unlike a recorded constraint system, nothing here is deferred: each
constraint is evaluated on concrete witness values and the first one that
does not hold raises ProofInvalid naming it. A witness that passes every
constraint is exactly a witness a conforming prover accepts.
"""

from typing import Sequence

from errors import InvalidFieldElement, ProofInvalid, TreeDepthMismatch
from field_codec import SCALAR_MODULUS, to_field
from hash_utils import merkle_hash2


def merkle_opening_constraint(
    leaf: int,
    siblings: Sequence[int],
    positions: Sequence[int],
    public_root: int,
    depth: int,
    label: str = "merkle",
) -> None:
    """
    Merkle membership constraint.

    Inputs:
    - leaf: private witness (the commitment)
    - siblings: private witnesses, one per level
    - positions: private witnesses, 0 or 1 per level
    - public_root: public input
    - depth: configured protocol depth
    - label: prefix for the constraint names in errors ("deposit", "association", ...)

    Constraint Logic:
    ================
    1. len(siblings) == len(positions) == depth, otherwise the prover and
       verifier disagree on the protocol version (TreeDepthMismatch)
    2. For each level h:
        a) positions[h] * (positions[h] - 1) == 0   (boolean)
        b) route: pos == 0 -> (needle, sibling), pos == 1 -> (sibling, needle)
        c) needle = Poseidon(left, right)
    3. needle - public_root == 0

    Raises:
        TreeDepthMismatch: path length differs from depth
        InvalidFieldElement: a sibling or the root is not a field element
        ProofInvalid: a constraint does not hold
    """
    if len(siblings) != depth:
        raise TreeDepthMismatch(depth, len(siblings))
    if len(positions) != depth:
        raise TreeDepthMismatch(depth, len(positions))

    to_field(public_root)
    needle = leaf

    for h in range(depth):
        position_bit = positions[h]
        sibling = to_field(siblings[h])

        if isinstance(position_bit, bool) or position_bit not in (0, 1):
            raise ProofInvalid(
                f"{label} path index at level {h} is not a bit: {position_bit!r}",
                constraint=f"{label}.pathIndices[{h}].boolean",
            )

        if position_bit == 0:
            left, right = needle, sibling
        else:
            left, right = sibling, needle
        needle = merkle_hash2(left, right)

    if needle != public_root:
        raise ProofInvalid(
            f"{label} root mismatch: path does not lead to the public root",
            constraint=f"{label}.root",
        )


def binding_constraint(value: int, name: str) -> int:
    """
    Tie a public signal into the statement.

    Mirrors the `value * value` constraint the circuit places on recipient,
    relayer, fee, association set id and timestamp: always satisfiable, but
    the signal then sits in the public input vector, so a proof for one value
    does not verify for another. Returns the square for callers that want it.
    """
    try:
        v = to_field(value)
    except InvalidFieldElement as exc:
        raise InvalidFieldElement(f"{name}: {exc}", value) from exc
    return (v * v) % SCALAR_MODULUS
