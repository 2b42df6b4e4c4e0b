# merkle_tree.py
"""
Fixed-depth binary Merkle tree over Poseidon, plus the shared accumulator.

This is the "off-chain" part: we build the tree and compute authentication
paths in plain Python. The circuits (withdraw_circuit.py,
innocence_circuit.py) re-derive the same root from a leaf and a path.

Layout:
- depth is a protocol constant (10 for the demo config, 26 for production)
- the tree always has 2^depth leaf slots: real leaves first, then zeros
- levels[0] = leaves, levels[h] = nodes at height h, levels[depth][0] = root

Zero padding is never materialised. A missing node at height h is the root
of an all-zero subtree, zero_hashes(depth)[h], which yields exactly the root
that explicit padding with 0 leaves would, and keeps depth 26 usable.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Sequence, Tuple

from errors import CommitmentNotFound, TreeDepthMismatch, TreeFull
from field_codec import short_hex, to_field
from hash_utils import merkle_hash2, zero_hashes

logger = logging.getLogger(__name__)

DEFAULT_ROOT_HISTORY = 30


@dataclass(frozen=True)
class AuthenticationPath:
    """
    Merkle opening of one leaf, ordered leaf -> root.

    - path_elements[h] = sibling value at height h
    - path_indices[h]  = 0 if our node was the LEFT child at height h,
                         1 if it was the RIGHT child
    """

    leaf_index: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]

    @property
    def depth(self) -> int:
        return len(self.path_elements)

    def pairs(self) -> List[Tuple[int, bool]]:
        """(sibling, is_right) per level."""
        return [(s, bit == 1) for s, bit in zip(self.path_elements, self.path_indices)]


def compute_root(leaf: int, path_elements: Sequence[int], path_indices: Sequence[int]) -> int:
    """
    Recombine a leaf with its path.

    At each level: if the bit is 0 we are the left child, hash (node, sibling);
    if it is 1 we are the right child, hash (sibling, node).
    """
    if len(path_elements) != len(path_indices):
        raise ValueError(
            f"Length mismatch: {len(path_elements)} siblings but {len(path_indices)} positions"
        )
    node = leaf
    for h, (sibling, bit) in enumerate(zip(path_elements, path_indices)):
        if bit == 0:
            node = merkle_hash2(node, sibling)
        elif bit == 1:
            node = merkle_hash2(sibling, node)
        else:
            raise ValueError(f"Invalid position at level {h}: {bit}. Must be 0 or 1.")
    return node


def verify_path(leaf: int, path: AuthenticationPath, root: int, depth: int) -> bool:
    """True iff the path authenticates leaf against root at the given depth."""
    if path.depth != depth:
        raise TreeDepthMismatch(depth, path.depth)
    return compute_root(leaf, path.path_elements, path.path_indices) == root


class MerkleTree:
    """
    Immutable fixed-depth binary Merkle tree (arity = 2).

    Leaf order is whatever the caller supplies (normally deposit order);
    nothing is sorted or deduplicated.
    """

    def __init__(self, leaves: Sequence[int], depth: int) -> None:
        if depth < 1:
            raise ValueError("Tree depth must be at least 1")
        if len(leaves) > 2 ** depth:
            raise TreeFull(f"{len(leaves)} leaves do not fit in a tree of depth {depth}")
        self.depth = depth
        self.leaves = [to_field(x) for x in leaves]
        self.levels: List[List[int]] = []
        self._zeros = zero_hashes(depth)
        self._build_tree()

    @classmethod
    def from_levels(cls, depth: int, levels: Sequence[Sequence[int]]) -> "MerkleTree":
        """Wrap already-hashed levels (copied) without recomputing anything."""
        tree = cls.__new__(cls)
        tree.depth = depth
        tree.levels = [list(level) for level in levels]
        tree.leaves = tree.levels[0]
        tree._zeros = zero_hashes(depth)
        return tree

    def _build_tree(self) -> None:
        """Build the populated prefix of every level, bottom-up."""
        level = self.leaves[:]
        self.levels.append(level)

        for h in range(self.depth):
            next_level = []
            for i in range(0, len(level), 2):
                left = level[i]
                # past the last real node the sibling is an empty subtree
                right = level[i + 1] if i + 1 < len(level) else self._zeros[h]
                next_level.append(merkle_hash2(left, right))
            self.levels.append(next_level)
            level = next_level

    @property
    def capacity(self) -> int:
        return 2 ** self.depth

    def node(self, height: int, index: int) -> int:
        """Node value at (height, index), zero-subtree root where unpopulated."""
        level = self.levels[height]
        if index < len(level):
            return level[index]
        return self._zeros[height]

    def root(self) -> int:
        """Return the root of the tree (a field element)."""
        return self.node(self.depth, 0)

    def opening(self, index: int) -> AuthenticationPath:
        """
        Compute the authentication path for the leaf slot at index.

        Example for depth 2, leaves [A, B, C, D] and opening(2):

                    root
                   /    \\
                 N1      N2
                /  \\    /  \\
               A    B  C    D

        - path_indices[0] = 0, path_elements[0] = D   (C is a LEFT child)
        - path_indices[1] = 1, path_elements[1] = N1  (N2 is a RIGHT child)

        An index past the real leaves but inside the tree yields a path
        through padding. That path is valid but says nothing useful; callers
        must only ask for indices they inserted.
        """
        if index < 0 or index >= self.capacity:
            raise IndexError("Leaf index out of range")

        siblings: List[int] = []
        positions: List[int] = []

        idx = index
        for h in range(self.depth):
            # sibling index: flip the last bit
            siblings.append(self.node(h, idx ^ 1))
            positions.append(idx & 1)
            idx //= 2

        return AuthenticationPath(
            leaf_index=index,
            path_elements=tuple(siblings),
            path_indices=tuple(positions),
        )

    prove_inclusion = opening

    def index_of(self, leaf: int) -> int:
        """First index holding leaf, or CommitmentNotFound."""
        try:
            return self.leaves.index(leaf)
        except ValueError:
            raise CommitmentNotFound(leaf, "merkle tree") from None


def build(leaves: Sequence[int], depth: int) -> MerkleTree:
    return MerkleTree(leaves, depth)


def root(tree: MerkleTree) -> int:
    return tree.root()


def prove_inclusion(tree: MerkleTree, index: int) -> AuthenticationPath:
    return tree.opening(index)


class MerkleAccumulator:
    """
    Shared append-only deposit accumulator.

    One instance is owned by the coordinating service (pool.ShieldedPool) and
    injected wherever it is needed, tests create as many as they like.
    Inserts are serialized by a lock because every insert moves the root
    that later proofs must target. Readers that need a consistent view take
    snapshot() and prove against that.

    A bounded window of recent roots is remembered so that a proof built
    against a root that was current a few deposits ago is still accepted;
    the window size is a protocol parameter.
    """

    def __init__(self, depth: int, root_history_size: int = DEFAULT_ROOT_HISTORY) -> None:
        if depth < 1:
            raise ValueError("Tree depth must be at least 1")
        if root_history_size < 1:
            raise ValueError("root_history_size must be at least 1")
        self.depth = depth
        self._zeros = zero_hashes(depth)
        self._lock = threading.Lock()
        self._levels: List[List[int]] = [[] for _ in range(depth + 1)]
        self._positions: Dict[int, int] = {}
        self._roots: Deque[int] = deque(maxlen=root_history_size)
        self._roots.append(self._zeros[depth])

    def __len__(self) -> int:
        return len(self._levels[0])

    @property
    def capacity(self) -> int:
        return 2 ** self.depth

    def _node(self, height: int, index: int) -> int:
        level = self._levels[height]
        if index < len(level):
            return level[index]
        return self._zeros[height]

    def _append_locked(self, leaf: int) -> int:
        index = len(self._levels[0])
        if index >= self.capacity:
            raise TreeFull(f"accumulator of depth {self.depth} is full")

        self._levels[0].append(leaf)
        idx = index
        for h in range(self.depth):
            parent = idx // 2
            value = merkle_hash2(self._node(h, parent * 2), self._node(h, parent * 2 + 1))
            upper = self._levels[h + 1]
            if parent < len(upper):
                upper[parent] = value
            else:
                upper.append(value)
            idx = parent

        self._positions.setdefault(leaf, index)
        self._roots.append(self._node(self.depth, 0))
        return index

    def insert(self, leaf: int) -> int:
        """Append one commitment, return its leaf index."""
        to_field(leaf)
        with self._lock:
            index = self._append_locked(leaf)
            new_root = self._roots[-1]
        logger.info(f"Inserted leaf {index}, root now {short_hex(new_root)}")
        return index

    def bulk_insert(self, leaves: Iterable[int]) -> List[int]:
        """Append an ordered batch (e.g. from the ledger leaf reader) atomically."""
        batch = [to_field(leaf) for leaf in leaves]
        with self._lock:
            if len(self._levels[0]) + len(batch) > self.capacity:
                raise TreeFull(f"accumulator of depth {self.depth} cannot take {len(batch)} more leaves")
            indices = [self._append_locked(leaf) for leaf in batch]
        logger.info(f"Inserted {len(indices)} leaves, tree size {len(self)}")
        return indices

    def root(self) -> int:
        with self._lock:
            return self._roots[-1]

    def known_roots(self) -> List[int]:
        """Recent roots, oldest first."""
        with self._lock:
            return list(self._roots)

    def is_known_root(self, candidate: int) -> bool:
        with self._lock:
            return candidate in self._roots

    def index_of(self, commitment: int) -> int:
        with self._lock:
            try:
                return self._positions[commitment]
            except KeyError:
                raise CommitmentNotFound(commitment, "deposit accumulator") from None

    def snapshot(self) -> MerkleTree:
        """Consistent immutable copy of the current tree."""
        with self._lock:
            return MerkleTree.from_levels(self.depth, self._levels)

    def prove_inclusion(self, index: int) -> Tuple[int, AuthenticationPath]:
        """(root, path) taken from the same consistent view."""
        tree = self.snapshot()
        return tree.root(), tree.opening(index)
