# innocence_circuit.py
"""
Proof-of-innocence circuit contract.

Public signals (exact order):
    depositRoot, associationSetRoot, nullifierHash, associationSetId, timestamp
Private signals:
    nullifier, secret,
    depositPathElements[depth], depositPathIndices[depth],
    associationPathElements[depth], associationPathIndices[depth]

The one hidden commitment Poseidon(nullifier, secret) must authenticate
against BOTH roots, through two unrelated paths (different index, different
siblings, same leaf value). associationSetId and timestamp are bound so a
proof made for one set or epoch cannot be replayed as a claim about another.

If the commitment was never added to the association set there is no path to
give, so the statement simply cannot be built: exclusion is decided by
whoever curates the association tree, not by this circuit.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from commitment import DepositNote, commit, nullifier_hash
from errors import ProofInvalid, TreeDepthMismatch
from field_codec import encode_u8_signal, encode_u64_signal, parse_field, to_bytes
from merkle_tree import MerkleTree
from zk_merkle import binding_constraint, merkle_opening_constraint

PUBLIC_SIGNAL_NAMES = (
    "depositRoot",
    "associationSetRoot",
    "nullifierHash",
    "associationSetId",
    "timestamp",
)


@dataclass(frozen=True)
class InnocencePublicSignals:
    deposit_root: int
    association_set_root: int
    nullifier_hash: int
    association_set_id: int
    timestamp: int

    def as_list(self) -> List[int]:
        return [
            self.deposit_root,
            self.association_set_root,
            self.nullifier_hash,
            self.association_set_id,
            self.timestamp,
        ]

    def to_bytes_list(self) -> List[bytes]:
        # set id goes on the wire as a u8 and the timestamp as a u64, both
        # right-aligned, which is the same 32-byte big-endian integer
        return [
            to_bytes(self.deposit_root),
            to_bytes(self.association_set_root),
            to_bytes(self.nullifier_hash),
            encode_u8_signal(self.association_set_id),
            encode_u64_signal(self.timestamp),
        ]

    @classmethod
    def from_list(cls, values: Sequence[Any]) -> "InnocencePublicSignals":
        if len(values) != len(PUBLIC_SIGNAL_NAMES):
            raise ProofInvalid(
                f"innocence expects {len(PUBLIC_SIGNAL_NAMES)} public signals, got {len(values)}",
                constraint="publicSignals.length",
            )
        return cls(*(parse_field(v) for v in values))


@dataclass(frozen=True)
class InnocencePrivateSignals:
    nullifier: int
    secret: int
    deposit_path_elements: Tuple[int, ...]
    deposit_path_indices: Tuple[int, ...]
    association_path_elements: Tuple[int, ...]
    association_path_indices: Tuple[int, ...]


def check_innocence(public: InnocencePublicSignals, private: InnocencePrivateSignals, depth: int) -> None:
    """
    Evaluate every innocence constraint on concrete values.

    Raises:
        InvalidFieldElement: a signal is outside the scalar field
        TreeDepthMismatch: either path does not have `depth` levels
        ProofInvalid: a constraint fails (`constraint` names which one)
    """
    for name, value in zip(PUBLIC_SIGNAL_NAMES, public.as_list()):
        binding_constraint(value, name)

    commitment = commit(private.nullifier, private.secret)

    if nullifier_hash(private.nullifier) != public.nullifier_hash:
        raise ProofInvalid(
            "nullifierHash does not equal Poseidon(nullifier)",
            constraint="nullifierHash",
        )

    merkle_opening_constraint(
        commitment,
        private.deposit_path_elements,
        private.deposit_path_indices,
        public.deposit_root,
        depth,
        label="deposit",
    )
    merkle_opening_constraint(
        commitment,
        private.association_path_elements,
        private.association_path_indices,
        public.association_set_root,
        depth,
        label="association",
    )


@dataclass(frozen=True)
class InnocenceStatement:
    public: InnocencePublicSignals
    private: InnocencePrivateSignals
    depth: int

    def check(self) -> None:
        check_innocence(self.public, self.private, self.depth)

    def is_satisfied(self) -> bool:
        try:
            self.check()
        except ProofInvalid:
            return False
        return True

    def public_inputs(self) -> List[int]:
        return self.public.as_list()

    def public_inputs_bytes(self) -> List[bytes]:
        return self.public.to_bytes_list()

    def to_circuit_input(self) -> Dict[str, Any]:
        """snarkjs input.json for the innocence circuit."""
        return {
            "depositRoot": str(self.public.deposit_root),
            "associationSetRoot": str(self.public.association_set_root),
            "nullifierHash": str(self.public.nullifier_hash),
            "associationSetId": str(self.public.association_set_id),
            "timestamp": str(self.public.timestamp),
            "nullifier": str(self.private.nullifier),
            "secret": str(self.private.secret),
            "depositPathElements": [str(e) for e in self.private.deposit_path_elements],
            "depositPathIndices": list(self.private.deposit_path_indices),
            "associationPathElements": [str(e) for e in self.private.association_path_elements],
            "associationPathIndices": list(self.private.association_path_indices),
        }


def build_innocence_witness(
    note: DepositNote,
    deposit_tree: MerkleTree,
    association_tree: MerkleTree,
    association_set_id: int,
    timestamp: int,
    deposit_index: Optional[int] = None,
    association_index: Optional[int] = None,
) -> InnocenceStatement:
    """
    Assemble an innocence statement from a note and two tree snapshots.

    Both trees must use the same depth (TreeDepthMismatch otherwise).
    Indices are looked up from the note's commitment unless given;
    CommitmentNotFound if it is absent from either tree.
    """
    if deposit_tree.depth != association_tree.depth:
        raise TreeDepthMismatch(deposit_tree.depth, association_tree.depth)
    if deposit_index is None:
        deposit_index = deposit_tree.index_of(note.commitment)
    if association_index is None:
        association_index = association_tree.index_of(note.commitment)

    deposit_path = deposit_tree.opening(deposit_index)
    association_path = association_tree.opening(association_index)

    return InnocenceStatement(
        public=InnocencePublicSignals(
            deposit_root=deposit_tree.root(),
            association_set_root=association_tree.root(),
            nullifier_hash=note.nullifier_hash,
            association_set_id=association_set_id,
            timestamp=timestamp,
        ),
        private=InnocencePrivateSignals(
            nullifier=note.nullifier,
            secret=note.secret,
            deposit_path_elements=deposit_path.path_elements,
            deposit_path_indices=deposit_path.path_indices,
            association_path_elements=association_path.path_elements,
            association_path_indices=association_path.path_indices,
        ),
        depth=deposit_tree.depth,
    )
