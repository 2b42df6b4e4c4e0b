# config.py
"""
Shielded pool configuration.

Protocol parameters (tree depth, root history) must agree between whoever
builds witnesses and whoever verifies: a depth mismatch is a different
circuit. Everything else (prover paths, logging) is local.
"""

import copy
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import List, Optional

DEMO_TREE_DEPTH = 10
PRODUCTION_TREE_DEPTH = 26
MAX_TREE_DEPTH = 32


# ============================================================================
# LOGGING
# ============================================================================

@dataclass
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
    file: Optional[str] = None


def setup_logging(config: Optional[LogConfig] = None) -> logging.Logger:
    """Configure the root logger; every module logs through getLogger(__name__)."""
    config = config or LogConfig()
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    formatter = logging.Formatter(config.format, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.file:
        from logging.handlers import RotatingFileHandler
        file_handler = RotatingFileHandler(config.file, maxBytes=10 * 1024 * 1024, backupCount=3)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# ============================================================================
# PROTOCOL
# ============================================================================

@dataclass
class TreeConfig:
    depth: int = DEMO_TREE_DEPTH
    root_history_size: int = 30


@dataclass
class ProverConfig:
    snarkjs: str = "snarkjs"
    withdraw_wasm: str = "circuits/build/withdraw_js/withdraw.wasm"
    withdraw_zkey: str = "circuits/build/withdraw_final.zkey"
    innocence_wasm: str = "circuits/build/innocence_js/innocence.wasm"
    innocence_zkey: str = "circuits/build/innocence_final.zkey"
    withdraw_vkey: str = "circuits/build/withdraw_verification_key.json"
    innocence_vkey: str = "circuits/build/innocence_verification_key.json"
    timeout_sec: float = 120.0


@dataclass
class InnocenceConfig:
    # accepted window around the verifier clock for the timestamp a proof is bound to
    max_age_sec: int = 3600
    max_future_sec: int = 60


@dataclass
class ProtocolConfig:
    """Complete configuration."""

    tree: TreeConfig = field(default_factory=TreeConfig)
    prover: ProverConfig = field(default_factory=ProverConfig)
    innocence: InnocenceConfig = field(default_factory=InnocenceConfig)
    log: LogConfig = field(default_factory=LogConfig)
    vk_version: str = "1"

    @classmethod
    def default_demo(cls) -> "ProtocolConfig":
        return cls(tree=TreeConfig(depth=DEMO_TREE_DEPTH))

    @classmethod
    def default_production(cls) -> "ProtocolConfig":
        return cls(tree=TreeConfig(depth=PRODUCTION_TREE_DEPTH), log=LogConfig(level="WARNING"))

    @classmethod
    def from_env(cls, base: Optional["ProtocolConfig"] = None) -> "ProtocolConfig":
        """Apply SHIELDED_POOL_* environment overrides to a copy of base (or defaults)."""
        config = copy.deepcopy(base) if base is not None else cls()

        if os.getenv("SHIELDED_POOL_TREE_DEPTH"):
            config.tree.depth = int(os.getenv("SHIELDED_POOL_TREE_DEPTH"))
        if os.getenv("SHIELDED_POOL_ROOT_HISTORY"):
            config.tree.root_history_size = int(os.getenv("SHIELDED_POOL_ROOT_HISTORY"))
        if os.getenv("SHIELDED_POOL_SNARKJS"):
            config.prover.snarkjs = os.getenv("SHIELDED_POOL_SNARKJS")
        if os.getenv("SHIELDED_POOL_PROVER_TIMEOUT"):
            config.prover.timeout_sec = float(os.getenv("SHIELDED_POOL_PROVER_TIMEOUT"))
        if os.getenv("SHIELDED_POOL_INNOCENCE_MAX_AGE"):
            config.innocence.max_age_sec = int(os.getenv("SHIELDED_POOL_INNOCENCE_MAX_AGE"))
        if os.getenv("SHIELDED_POOL_LOG_LEVEL"):
            config.log.level = os.getenv("SHIELDED_POOL_LOG_LEVEL")

        return config

    @classmethod
    def _from_dict(cls, data: dict) -> "ProtocolConfig":
        config = cls()

        for key, value in data.items():
            if hasattr(config, key):
                if isinstance(value, dict):
                    sub_config = getattr(config, key)
                    for sub_key, sub_value in value.items():
                        if hasattr(sub_config, sub_key):
                            setattr(sub_config, sub_key, sub_value)
                else:
                    setattr(config, key, value)

        return config

    @classmethod
    def load(cls, path: str) -> "ProtocolConfig":
        with open(path, "r") as f:
            return cls._from_dict(json.load(f))

    def to_dict(self) -> dict:
        return asdict(self)

    def save(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def validate(self) -> List[str]:
        """Return a list of problems; empty means usable."""
        errors = []

        if not 1 <= self.tree.depth <= MAX_TREE_DEPTH:
            errors.append(f"tree.depth must be in [1, {MAX_TREE_DEPTH}]")
        if self.tree.root_history_size < 1:
            errors.append("tree.root_history_size must be >= 1")
        if self.prover.timeout_sec <= 0:
            errors.append("prover.timeout_sec must be > 0")
        if not self.prover.snarkjs.strip():
            errors.append("prover.snarkjs must not be empty")
        if self.innocence.max_age_sec <= 0:
            errors.append("innocence.max_age_sec must be > 0")
        if self.innocence.max_future_sec < 0:
            errors.append("innocence.max_future_sec must be >= 0")
        if not isinstance(getattr(logging, self.log.level.upper(), None), int):
            errors.append(f"log.level {self.log.level!r} is not a logging level")
        if not self.vk_version:
            errors.append("vk_version must not be empty")

        return errors
