# errors.py
"""
Typed failures of the shielded-pool core.

None of these are transient: a wrong proof does not become right by
resubmitting it, so every class reports ``retryable = False`` and nothing in
this package retries on its own. Callers decide what to do next based on the
concrete type (regenerate a proof vs. accept that funds are already gone).
"""

from typing import Optional


class ShieldedPoolError(Exception):
    """Base class for every error raised by the protocol core."""

    retryable = False


class InvalidFieldElement(ShieldedPoolError, ValueError):
    """Value is negative, not an integer, >= modulus, or has a bad byte length."""

    def __init__(self, message: str, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class ProofInvalid(ShieldedPoolError):
    """A circuit constraint or the pairing check failed."""

    def __init__(self, message: str, constraint: Optional[str] = None) -> None:
        super().__init__(message)
        self.constraint = constraint


class NullifierAlreadySpent(ShieldedPoolError):
    """The nullifier hash was registered by an earlier withdrawal."""

    def __init__(self, nullifier_hash: int) -> None:
        super().__init__(
            f"nullifier hash {nullifier_hash:#066x} already spent - double spend attempt"
        )
        self.nullifier_hash = nullifier_hash


class InnocenceAlreadyRecorded(ShieldedPoolError):
    """An innocence proof for this (nullifier hash, association set) was stored before."""

    def __init__(self, nullifier_hash: int, association_set_id: int) -> None:
        super().__init__(
            f"innocence already recorded for nullifier hash {nullifier_hash:#066x} "
            f"in association set {association_set_id}"
        )
        self.nullifier_hash = nullifier_hash
        self.association_set_id = association_set_id


class CommitmentNotFound(ShieldedPoolError, LookupError):
    """Lookup of a commitment in an accumulator or association set failed."""

    def __init__(self, commitment: int, where: str = "tree") -> None:
        super().__init__(f"commitment {commitment:#066x} not found in {where}")
        self.commitment = commitment
        self.where = where


class UnknownAssociationSet(ShieldedPoolError, KeyError):
    """No association set is registered under the requested id."""

    def __init__(self, set_id: int) -> None:
        super().__init__(f"association set {set_id} not found")
        self.set_id = set_id


class TreeDepthMismatch(ShieldedPoolError):
    """
    A path length does not match the configured depth.

    Indicates version skew between prover and verifier and is fatal.
    """

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"expected path of depth {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class TreeFull(ShieldedPoolError):
    """More leaves than 2^depth were supplied."""


class ProverError(ShieldedPoolError):
    """The external prover process failed or timed out."""
