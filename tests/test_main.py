"""
Demo driver tests
"""

import logging

from config import ProtocolConfig, TreeConfig
from main_prove_verify import generate_random_commitments, main, run_demo
from merkle_tree import compute_root


class TestDemo:
    """Tests for the end-to-end example flow."""

    def test_random_commitments(self):
        commitments = generate_random_commitments(5)
        assert len(commitments) == 5
        assert len(set(commitments)) == 5

    def test_run_demo(self):
        """Test the note ends up provable for withdrawal and innocence."""
        config = ProtocolConfig(tree=TreeConfig(depth=4))
        note, withdraw, innocence = run_demo(config, num_leaves=6)

        assert withdraw.is_satisfied()
        assert innocence.is_satisfied()
        assert withdraw.public.nullifier_hash == note.nullifier_hash
        assert innocence.public.deposit_root == withdraw.public.root
        assert compute_root(
            note.commitment,
            innocence.private.association_path_elements,
            innocence.private.association_path_indices,
        ) == innocence.public.association_set_root

    def test_run_demo_caps_leaves_to_capacity(self):
        """Test asking for more deposits than the tree holds still fits the note."""
        config = ProtocolConfig(tree=TreeConfig(depth=2))
        _, withdraw, innocence = run_demo(config, num_leaves=16)
        assert withdraw.is_satisfied()
        assert innocence.is_satisfied()

    def test_main_without_artifacts(self, monkeypatch, tmp_path):
        """Test main() checks statements when no circuit artifacts exist."""
        monkeypatch.setenv("SHIELDED_POOL_TREE_DEPTH", "4")
        config = ProtocolConfig.default_demo()
        config.prover.withdraw_zkey = str(tmp_path / "missing.zkey")
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        try:
            main(config)
        finally:
            for handler in root.handlers[len(before):]:
                root.removeHandler(handler)
            root.setLevel(level)
