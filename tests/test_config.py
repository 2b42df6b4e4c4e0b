"""
Configuration tests
"""

import logging

from config import (
    PRODUCTION_TREE_DEPTH,
    LogConfig,
    ProtocolConfig,
    TreeConfig,
    setup_logging,
)


class TestProtocolConfig:
    """Tests for ProtocolConfig."""

    def test_defaults_valid(self):
        assert ProtocolConfig().validate() == []
        assert ProtocolConfig.default_demo().tree.depth == 10
        assert ProtocolConfig.default_production().tree.depth == PRODUCTION_TREE_DEPTH

    def test_validate_reports_problems(self):
        config = ProtocolConfig(tree=TreeConfig(depth=0, root_history_size=0))
        config.log.level = "LOUD"
        errors = config.validate()
        assert len(errors) == 3
        assert any("tree.depth" in e for e in errors)

    def test_save_load(self, tmp_path):
        config = ProtocolConfig.default_production()
        config.prover.timeout_sec = 30.0
        path = tmp_path / "config.json"
        config.save(str(path))
        loaded = ProtocolConfig.load(str(path))
        assert loaded == config

    def test_load_ignores_unknown_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"tree": {"depth": 12, "colour": "red"}, "unknown": 1}')
        loaded = ProtocolConfig.load(str(path))
        assert loaded.tree.depth == 12
        assert not hasattr(loaded, "unknown")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SHIELDED_POOL_TREE_DEPTH", "20")
        monkeypatch.setenv("SHIELDED_POOL_ROOT_HISTORY", "64")
        monkeypatch.setenv("SHIELDED_POOL_SNARKJS", "npx snarkjs")
        monkeypatch.setenv("SHIELDED_POOL_PROVER_TIMEOUT", "15")
        monkeypatch.setenv("SHIELDED_POOL_LOG_LEVEL", "DEBUG")
        config = ProtocolConfig.from_env()
        assert config.tree.depth == 20
        assert config.tree.root_history_size == 64
        assert config.prover.snarkjs == "npx snarkjs"
        assert config.prover.timeout_sec == 15.0
        assert config.log.level == "DEBUG"

    def test_from_env_keeps_base(self, monkeypatch):
        monkeypatch.delenv("SHIELDED_POOL_TREE_DEPTH", raising=False)
        config = ProtocolConfig.from_env(ProtocolConfig.default_production())
        assert config.tree.depth == PRODUCTION_TREE_DEPTH

    def test_from_env_leaves_base_untouched(self, monkeypatch):
        monkeypatch.setenv("SHIELDED_POOL_TREE_DEPTH", "12")
        monkeypatch.setenv("SHIELDED_POOL_LOG_LEVEL", "DEBUG")
        base = ProtocolConfig.default_production()
        config = ProtocolConfig.from_env(base)
        assert config.tree.depth == 12
        assert base.tree.depth == PRODUCTION_TREE_DEPTH
        assert base.log.level == "WARNING"
        assert config.tree is not base.tree

    def test_innocence_window(self, monkeypatch):
        monkeypatch.setenv("SHIELDED_POOL_INNOCENCE_MAX_AGE", "600")
        assert ProtocolConfig.from_env().innocence.max_age_sec == 600

        config = ProtocolConfig()
        config.innocence.max_age_sec = 0
        config.innocence.max_future_sec = -1
        assert len(config.validate()) == 2


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_file_handler(self, tmp_path):
        root = logging.getLogger()
        before = list(root.handlers)
        level = root.level
        try:
            setup_logging(LogConfig(level="DEBUG", file=str(tmp_path / "pool.log")))
            assert root.level == logging.DEBUG
            assert len(root.handlers) == len(before) + 2
        finally:
            for handler in root.handlers[len(before):]:
                root.removeHandler(handler)
                handler.close()
            root.setLevel(level)
