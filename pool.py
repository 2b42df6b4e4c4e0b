# pool.py
"""
Coordinating service: ties accumulator, association sets, verifier and
registries into the deposit / withdraw / prove-innocence flows.

    deposit            commitment -> accumulator
    withdraw_witness   note -> statement against a consistent snapshot
    process_withdrawal proof + public signals -> known root? -> pairing
                       check -> nullifier registered (exactly once)
    process_innocence  proof + public signals -> known deposit root, current
                       association set root -> pairing check -> recorded once

Nothing here is a global: every collaborator is passed in (or built from
the config) so tests can run as many independent pools as they like.
"""

import logging
import time
from typing import Callable, Optional, Sequence, Union

from association_sets import AssociationSetRegistry
from commitment import DepositNote
from config import ProtocolConfig
from errors import ProofInvalid, TreeDepthMismatch, UnknownAssociationSet
from field_codec import short_hex
from groth16 import VerifyingKey, verify
from innocence_circuit import InnocencePublicSignals, InnocenceStatement, build_innocence_witness
from merkle_tree import MerkleAccumulator
from nullifier_registry import InnocenceRecord, InnocenceRegistry, NullifierRecord, NullifierRegistry
from proof_codec import CompressedProof, decompress_proof
from withdraw_circuit import WithdrawPublicSignals, WithdrawStatement, build_withdraw_witness

logger = logging.getLogger(__name__)


class ShieldedPool:
    def __init__(
        self,
        config: Optional[ProtocolConfig] = None,
        accumulator: Optional[MerkleAccumulator] = None,
        registry: Optional[NullifierRegistry] = None,
        innocence_registry: Optional[InnocenceRegistry] = None,
        association_sets: Optional[AssociationSetRegistry] = None,
        withdraw_vk: Optional[VerifyingKey] = None,
        innocence_vk: Optional[VerifyingKey] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or ProtocolConfig.default_demo()
        depth = self.config.tree.depth

        if accumulator is None:
            accumulator = MerkleAccumulator(depth, self.config.tree.root_history_size)
        self.accumulator = accumulator
        if self.accumulator.depth != depth:
            raise TreeDepthMismatch(depth, self.accumulator.depth)

        if association_sets is None:
            association_sets = AssociationSetRegistry.with_defaults(depth)
        self.association_sets = association_sets
        if self.association_sets.depth != depth:
            raise TreeDepthMismatch(depth, self.association_sets.depth)

        self.registry = registry if registry is not None else NullifierRegistry()
        self.innocence_registry = (
            innocence_registry if innocence_registry is not None else InnocenceRegistry()
        )
        self.withdraw_vk = withdraw_vk
        self.innocence_vk = innocence_vk
        self.clock = clock

    @property
    def depth(self) -> int:
        return self.config.tree.depth

    # ------------------------------------------------------------------
    # deposits and witnesses
    # ------------------------------------------------------------------

    def deposit(self, commitment: int) -> int:
        """Insert a commitment, return its leaf index."""
        return self.accumulator.insert(commitment)

    def withdraw_witness(
        self,
        note: DepositNote,
        recipient: int,
        relayer: int = 0,
        fee: int = 0,
    ) -> WithdrawStatement:
        tree = self.accumulator.snapshot()
        return build_withdraw_witness(note, tree, recipient, relayer=relayer, fee=fee)

    def innocence_witness(
        self,
        note: DepositNote,
        association_set_id: int,
        timestamp: Optional[int] = None,
    ) -> InnocenceStatement:
        """
        Statement that the note's commitment is both deposited and in the set.

        Raises CommitmentNotFound if it is missing from either tree.
        """
        association_tree = self.association_sets.get(association_set_id).tree()
        return build_innocence_witness(
            note,
            self.accumulator.snapshot(),
            association_tree,
            association_set_id,
            int(self.clock()) if timestamp is None else timestamp,
        )

    # ------------------------------------------------------------------
    # proof processing
    # ------------------------------------------------------------------

    def _verify(self, vk: Optional[VerifyingKey], proof: CompressedProof, inputs: Sequence[int], kind: str) -> None:
        if vk is None:
            logger.error(f"No {kind} verifying key configured, refusing the proof")
            raise ProofInvalid(f"no {kind} verifying key configured", constraint="verifyingKey")
        verify(vk, decompress_proof(proof), inputs)

    def _check_timestamp(self, timestamp: int) -> None:
        now = int(self.clock())
        window = self.config.innocence
        if not now - window.max_age_sec <= timestamp <= now + window.max_future_sec:
            raise ProofInvalid(
                f"proof timestamp {timestamp} is outside the accepted window around {now}",
                constraint="timestamp",
            )

    def process_withdrawal(
        self,
        proof: CompressedProof,
        public_signals: Union[WithdrawPublicSignals, Sequence[int]],
    ) -> NullifierRecord:
        """
        Accept a withdrawal.

        Raises:
            ProofInvalid: unknown root or failed pairing check (regenerate)
            NullifierAlreadySpent: the note was withdrawn before (final)
        """
        if not isinstance(public_signals, WithdrawPublicSignals):
            public_signals = WithdrawPublicSignals.from_list(public_signals)

        if not self.accumulator.is_known_root(public_signals.root):
            raise ProofInvalid(
                f"root {short_hex(public_signals.root)} is not a recent deposit root",
                constraint="root.known",
            )
        self._verify(self.withdraw_vk, proof, public_signals.as_list(), "withdraw")

        record = self.registry.try_register(public_signals.nullifier_hash)
        logger.info(f"Withdrawal accepted for nullifier hash {short_hex(record.nullifier_hash)}")
        return record

    def process_innocence(
        self,
        proof: CompressedProof,
        public_signals: Union[InnocencePublicSignals, Sequence[int]],
    ) -> InnocenceRecord:
        """
        Accept a proof of innocence.

        The association set root must be the set's CURRENT root: a proof made
        before a commitment was removed from the set no longer counts.
        The timestamp the proof is bound to must lie within
        config.innocence of the pool clock, and is what gets recorded.
        """
        if not isinstance(public_signals, InnocencePublicSignals):
            public_signals = InnocencePublicSignals.from_list(public_signals)

        if not self.accumulator.is_known_root(public_signals.deposit_root):
            raise ProofInvalid(
                f"deposit root {short_hex(public_signals.deposit_root)} is not a recent deposit root",
                constraint="depositRoot.known",
            )
        try:
            association_set = self.association_sets.get(public_signals.association_set_id)
        except UnknownAssociationSet:
            raise ProofInvalid(
                f"unknown association set {public_signals.association_set_id}",
                constraint="associationSetId",
            ) from None
        if association_set.root() != public_signals.association_set_root:
            raise ProofInvalid(
                f"association set root is not the current root of set {association_set.id}",
                constraint="associationSetRoot.current",
            )
        self._check_timestamp(public_signals.timestamp)
        self._verify(self.innocence_vk, proof, public_signals.as_list(), "innocence")

        return self.innocence_registry.try_record(
            public_signals.nullifier_hash,
            public_signals.association_set_id,
            proven_at=public_signals.timestamp,
        )
