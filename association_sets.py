# association_sets.py
"""
Association sets: curated subsets of deposit commitments.

An association set is a list of commitments some provider vouches for
("no links to sanctioned entities", "KYC'd institution", ...), committed to
with the same Poseidon Merkle tree as the deposit accumulator. A depositor
whose commitment is in the set can prove it (innocence_circuit.py) without
saying which commitment is theirs.

Membership is decided by the provider, never by a random draw: the
ComplianceProvider seam below is what the registry asks before adding.
Removal rebuilds the tree, so any innocence proof built against the old
root stops matching the set's current root.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

from errors import CommitmentNotFound, UnknownAssociationSet
from field_codec import short_hex, to_field
from merkle_tree import MerkleTree

logger = logging.getLogger(__name__)

DEFAULT_SET_DEPTH = 10


@dataclass(frozen=True)
class AssociationSetInfo:
    id: int
    name: str
    provider: str
    trust_level: str
    description: str
    criteria: Tuple[str, ...]


DEFAULT_ASSOCIATION_SETS: Tuple[AssociationSetInfo, ...] = (
    AssociationSetInfo(
        id=0,
        name="All Verified Deposits",
        provider="Chain Analysis",
        trust_level="high",
        description="Deposits verified by chain analysis providers",
        criteria=(
            "Source address has no links to sanctioned entities",
            "Funds traceable to legitimate exchanges or businesses",
            "No connection to known hacking incidents",
        ),
    ),
    AssociationSetInfo(
        id=1,
        name="Institutional Compliant",
        provider="KYC Provider",
        trust_level="high",
        description="Deposits from KYC-verified institutional participants",
        criteria=(
            "Depositor completed full KYC verification",
            "Source of funds documentation provided",
            "Institutional account holder",
        ),
    ),
    AssociationSetInfo(
        id=2,
        name="Community Clean List",
        provider="Community DAO",
        trust_level="medium",
        description="Community-governed list of non-malicious deposits",
        criteria=(
            "Community vote approval",
            "No objections from watchlist monitors",
            "6+ hours without challenge",
        ),
    ),
    AssociationSetInfo(
        id=3,
        name="US Compliant",
        provider="US Compliance",
        trust_level="high",
        description="Deposits compliant with US regulatory requirements",
        criteria=(
            "OFAC sanctions check passed",
            "Not from restricted jurisdiction",
            "FinCEN compliance verified",
        ),
    ),
    AssociationSetInfo(
        id=4,
        name="EU MiCA Compliant",
        provider="EU Compliance",
        trust_level="high",
        description="Deposits compliant with EU MiCA regulations",
        criteria=(
            "EU sanctions list check passed",
            "Travel Rule compliant origin",
            "AML/CFT verified",
        ),
    ),
)


@dataclass(frozen=True)
class MembershipProof:
    set_id: int
    root: int
    leaf_index: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]


@dataclass(frozen=True)
class ComplianceDecision:
    approved: bool
    reason: str = ""


class ComplianceProvider(Protocol):
    """Screens a depositor before their commitment enters a set."""

    def verify(self, address: bytes, commitment: int) -> ComplianceDecision:
        ...


class AssociationSet:
    """One curated set and its Merkle tree."""

    def __init__(self, info: AssociationSetInfo, depth: int = DEFAULT_SET_DEPTH) -> None:
        self.info = info
        self.depth = depth
        self._lock = threading.Lock()
        self._commitments: List[int] = []
        self._tree = MerkleTree([], depth)

    @property
    def id(self) -> int:
        return self.info.id

    @property
    def name(self) -> str:
        return self.info.name

    def __len__(self) -> int:
        with self._lock:
            return len(self._commitments)

    def __contains__(self, commitment: object) -> bool:
        with self._lock:
            return commitment in self._commitments

    def commitments(self) -> List[int]:
        with self._lock:
            return list(self._commitments)

    def add(self, commitment: int) -> bool:
        """Add a commitment. Returns False if it was already in the set."""
        commitment = to_field(commitment)
        with self._lock:
            if commitment in self._commitments:
                return False
            self._tree = MerkleTree(self._commitments + [commitment], self.depth)
            self._commitments.append(commitment)
            root = self._tree.root()
        logger.info(f"Added {short_hex(commitment)} to set {self.id}, root now {short_hex(root)}")
        return True

    def remove(self, commitment: int, reason: str) -> bool:
        """Drop a flagged commitment and rebuild. Returns False if it was absent."""
        with self._lock:
            if commitment not in self._commitments:
                return False
            remaining = [c for c in self._commitments if c != commitment]
            self._tree = MerkleTree(remaining, self.depth)
            self._commitments = remaining
            root = self._tree.root()
        logger.warning(
            f"Removed {short_hex(commitment)} from set {self.id} ({reason}), root now {short_hex(root)}"
        )
        return True

    def root(self) -> int:
        with self._lock:
            return self._tree.root()

    def tree(self) -> MerkleTree:
        """Current tree; replaced (not mutated) on every change."""
        with self._lock:
            return self._tree

    def membership(self, commitment: int) -> MembershipProof:
        with self._lock:
            tree = self._tree
        try:
            index = tree.index_of(commitment)
        except CommitmentNotFound:
            raise CommitmentNotFound(commitment, f"association set {self.id}") from None
        path = tree.opening(index)
        return MembershipProof(
            set_id=self.id,
            root=tree.root(),
            leaf_index=index,
            path_elements=path.path_elements,
            path_indices=path.path_indices,
        )


@dataclass
class AssociationSetRegistry:
    """The catalog of sets a verifier knows about, keyed by set id."""

    depth: int = DEFAULT_SET_DEPTH
    sets: Dict[int, AssociationSet] = field(default_factory=dict)

    @classmethod
    def with_defaults(cls, depth: int = DEFAULT_SET_DEPTH) -> "AssociationSetRegistry":
        registry = cls(depth=depth)
        for info in DEFAULT_ASSOCIATION_SETS:
            registry.register(info)
        return registry

    def register(self, info: AssociationSetInfo) -> AssociationSet:
        if info.id in self.sets:
            raise ValueError(f"association set {info.id} already registered")
        if not 0 <= info.id <= 0xFF:
            raise ValueError(f"association set id {info.id} does not fit in a u8")
        created = AssociationSet(info, self.depth)
        self.sets[info.id] = created
        return created

    def get(self, set_id: int) -> AssociationSet:
        try:
            return self.sets[set_id]
        except KeyError:
            raise UnknownAssociationSet(set_id) from None

    def screen_and_add(
        self,
        set_id: int,
        address: bytes,
        commitment: int,
        provider: ComplianceProvider,
    ) -> ComplianceDecision:
        """Ask the provider about a depositor; add the commitment only if approved."""
        target = self.get(set_id)
        decision = provider.verify(address, commitment)
        if decision.approved:
            target.add(commitment)
        else:
            logger.info(
                f"Provider declined {short_hex(commitment)} for set {set_id}: {decision.reason}"
            )
        return decision

    def sets_containing(self, commitment: int) -> List[int]:
        return [set_id for set_id, s in sorted(self.sets.items()) if commitment in s]

    def find_membership(self, set_id: int, commitment: int) -> Optional[MembershipProof]:
        try:
            return self.get(set_id).membership(commitment)
        except CommitmentNotFound:
            return None
