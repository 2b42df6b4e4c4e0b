# withdraw_circuit.py
"""
Withdraw circuit contract.

Public signals (in this exact order, it is the public input vector the
verifying key was generated for):
    root, nullifierHash, recipient, relayer, fee
Private signals:
    nullifier, secret, pathElements[depth], pathIndices[depth]

Constraints:
1. commitment := Poseidon(nullifier, secret)
   nullifierHash == Poseidon(nullifier)          (equality, not assignment)
2. recomputing the root from commitment and (pathElements, pathIndices)
   gives the public root
3. recipient, relayer and fee are bound into the statement

A proof for this statement reveals neither nullifier, secret, nor the leaf
index. It does not say the commitment is unspent: that is the nullifier
registry's job.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from commitment import DepositNote, commit, nullifier_hash
from errors import ProofInvalid
from field_codec import parse_field, to_bytes, to_field
from merkle_tree import MerkleTree
from zk_merkle import binding_constraint, merkle_opening_constraint

PUBLIC_SIGNAL_NAMES = ("root", "nullifierHash", "recipient", "relayer", "fee")


@dataclass(frozen=True)
class WithdrawPublicSignals:
    root: int
    nullifier_hash: int
    recipient: int
    relayer: int = 0
    fee: int = 0

    def as_list(self) -> List[int]:
        return [self.root, self.nullifier_hash, self.recipient, self.relayer, self.fee]

    def to_bytes_list(self) -> List[bytes]:
        """Each signal as 32 bytes big-endian, the proof submission format."""
        return [to_bytes(v) for v in self.as_list()]

    @classmethod
    def from_list(cls, values: Sequence[Any]) -> "WithdrawPublicSignals":
        """From snarkjs public.json (decimal strings) or raw ints/bytes."""
        if len(values) != len(PUBLIC_SIGNAL_NAMES):
            raise ProofInvalid(
                f"withdraw expects {len(PUBLIC_SIGNAL_NAMES)} public signals, got {len(values)}",
                constraint="publicSignals.length",
            )
        return cls(*(parse_field(v) for v in values))


@dataclass(frozen=True)
class WithdrawPrivateSignals:
    nullifier: int
    secret: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]


def check_withdraw(public: WithdrawPublicSignals, private: WithdrawPrivateSignals, depth: int) -> None:
    """
    Evaluate every withdraw constraint on concrete values.

    Raises:
        InvalidFieldElement: a signal is outside the scalar field
        TreeDepthMismatch: the path does not have `depth` levels
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
        private.path_elements,
        private.path_indices,
        public.root,
        depth,
        label="tree",
    )


@dataclass(frozen=True)
class WithdrawStatement:
    """Public + private signals for one withdrawal, ready for a prover."""

    public: WithdrawPublicSignals
    private: WithdrawPrivateSignals
    depth: int

    def check(self) -> None:
        check_withdraw(self.public, self.private, self.depth)

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
        """snarkjs input.json for the withdraw circuit (decimal strings)."""
        return {
            "root": str(self.public.root),
            "nullifierHash": str(self.public.nullifier_hash),
            "recipient": str(self.public.recipient),
            "relayer": str(self.public.relayer),
            "fee": str(self.public.fee),
            "nullifier": str(self.private.nullifier),
            "secret": str(self.private.secret),
            "pathElements": [str(e) for e in self.private.path_elements],
            "pathIndices": list(self.private.path_indices),
        }


def build_withdraw_witness(
    note: DepositNote,
    tree: MerkleTree,
    recipient: int,
    relayer: int = 0,
    fee: int = 0,
    index: Optional[int] = None,
) -> WithdrawStatement:
    """
    Assemble a withdraw statement from a note and a tree snapshot.

    The leaf index is looked up from the note's commitment unless given.
    Raises CommitmentNotFound if the commitment is not in the tree.
    """
    if index is None:
        index = tree.index_of(note.commitment)
    path = tree.opening(index)
    return WithdrawStatement(
        public=WithdrawPublicSignals(
            root=tree.root(),
            nullifier_hash=note.nullifier_hash,
            recipient=to_field(recipient),
            relayer=to_field(relayer),
            fee=to_field(fee),
        ),
        private=WithdrawPrivateSignals(
            nullifier=note.nullifier,
            secret=note.secret,
            path_elements=path.path_elements,
            path_indices=path.path_indices,
        ),
        depth=tree.depth,
    )
