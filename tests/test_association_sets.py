"""
Association set tests
"""

import pytest

from association_sets import (
    DEFAULT_ASSOCIATION_SETS,
    AssociationSet,
    AssociationSetInfo,
    AssociationSetRegistry,
    ComplianceDecision,
)
from errors import CommitmentNotFound, UnknownAssociationSet
from merkle_tree import MerkleTree, compute_root

INFO = AssociationSetInfo(
    id=7,
    name="Test Set",
    provider="Test Provider",
    trust_level="low",
    description="",
    criteria=(),
)


class AllowList:
    """Compliance provider approving a fixed set of addresses."""

    def __init__(self, allowed):
        self.allowed = set(allowed)
        self.calls = []

    def verify(self, address, commitment):
        self.calls.append((address, commitment))
        if address in self.allowed:
            return ComplianceDecision(approved=True)
        return ComplianceDecision(approved=False, reason="address not screened")


class TestAssociationSet:
    """Tests for a single set."""

    def test_add_idempotent(self, notes, depth):
        s = AssociationSet(INFO, depth)
        assert s.add(notes[0].commitment)
        assert not s.add(notes[0].commitment)
        assert len(s) == 1

    def test_root_matches_tree(self, notes, depth):
        s = AssociationSet(INFO, depth)
        for n in notes[:3]:
            s.add(n.commitment)
        assert s.root() == MerkleTree([n.commitment for n in notes[:3]], depth).root()

    def test_membership(self, notes, depth):
        s = AssociationSet(INFO, depth)
        for n in notes[:3]:
            s.add(n.commitment)
        proof = s.membership(notes[1].commitment)
        assert proof.set_id == 7
        assert proof.leaf_index == 1
        assert proof.root == s.root()
        assert compute_root(notes[1].commitment, proof.path_elements, proof.path_indices) == proof.root

    def test_membership_missing(self, notes, depth):
        s = AssociationSet(INFO, depth)
        s.add(notes[0].commitment)
        with pytest.raises(CommitmentNotFound) as excinfo:
            s.membership(notes[1].commitment)
        assert "association set 7" in str(excinfo.value)

    def test_remove_changes_root(self, notes, depth):
        """Test removal rebuilds the tree and drops membership."""
        s = AssociationSet(INFO, depth)
        for n in notes[:3]:
            s.add(n.commitment)
        before = s.root()
        assert s.remove(notes[1].commitment, reason="flagged")
        assert s.root() != before
        assert s.root() == MerkleTree([notes[0].commitment, notes[2].commitment], depth).root()
        assert notes[1].commitment not in s
        assert not s.remove(notes[1].commitment, reason="again")


class TestRegistry:
    """Tests for the set catalog and compliance screening."""

    def test_defaults(self):
        registry = AssociationSetRegistry.with_defaults(depth=3)
        assert sorted(registry.sets) == [0, 1, 2, 3, 4]
        assert registry.get(4).name == "EU MiCA Compliant"
        assert len(DEFAULT_ASSOCIATION_SETS) == 5

    def test_unknown_set(self):
        with pytest.raises(UnknownAssociationSet) as excinfo:
            AssociationSetRegistry(depth=3).get(9)
        assert excinfo.value.set_id == 9
        assert isinstance(excinfo.value, KeyError)

    def test_duplicate_and_oversized_ids(self):
        registry = AssociationSetRegistry(depth=3)
        registry.register(INFO)
        with pytest.raises(ValueError):
            registry.register(INFO)
        with pytest.raises(ValueError):
            registry.register(AssociationSetInfo(256, "x", "x", "x", "x", ()))

    def test_screen_and_add(self, notes):
        """Test only approved depositors enter the set."""
        registry = AssociationSetRegistry.with_defaults(depth=3)
        provider = AllowList([b"good"])

        approved = registry.screen_and_add(0, b"good", notes[0].commitment, provider)
        declined = registry.screen_and_add(0, b"bad", notes[1].commitment, provider)

        assert approved.approved
        assert not declined.approved
        assert declined.reason == "address not screened"
        assert notes[0].commitment in registry.get(0)
        assert notes[1].commitment not in registry.get(0)
        assert len(provider.calls) == 2

    def test_sets_containing(self, notes):
        registry = AssociationSetRegistry.with_defaults(depth=3)
        registry.get(1).add(notes[0].commitment)
        registry.get(3).add(notes[0].commitment)
        assert registry.sets_containing(notes[0].commitment) == [1, 3]
        assert registry.find_membership(0, notes[0].commitment) is None
        assert registry.find_membership(1, notes[0].commitment).leaf_index == 0
