# prover.py
"""
Proof generation through the snarkjs CLI.

The circuits themselves (circom -> wasm + zkey) are built outside this
package. Here we only feed a checked statement to

    snarkjs groth16 fullprove input.json circuit.wasm circuit.zkey proof.json public.json

and read the result back. Every request gets its own temporary directory, so
concurrent proofs share nothing.
"""

import json
import logging
import os
import shlex
import subprocess
import tempfile
import time
from typing import List, Tuple, Union

from config import ProverConfig
from errors import ProofInvalid, ProverError
from field_codec import parse_field
from innocence_circuit import InnocenceStatement
from proof_codec import Groth16Proof
from withdraw_circuit import WithdrawStatement

logger = logging.getLogger(__name__)

Statement = Union[WithdrawStatement, InnocenceStatement]


class SnarkjsProver:
    """Groth16 prover for one circuit (one wasm + zkey pair)."""

    def __init__(
        self,
        wasm_path: str,
        zkey_path: str,
        snarkjs: str = "snarkjs",
        timeout: float = 120.0,
    ) -> None:
        self.wasm_path = wasm_path
        self.zkey_path = zkey_path
        self.snarkjs = snarkjs
        self.timeout = timeout

    @classmethod
    def for_withdraw(cls, config: ProverConfig) -> "SnarkjsProver":
        return cls(config.withdraw_wasm, config.withdraw_zkey, config.snarkjs, config.timeout_sec)

    @classmethod
    def for_innocence(cls, config: ProverConfig) -> "SnarkjsProver":
        return cls(config.innocence_wasm, config.innocence_zkey, config.snarkjs, config.timeout_sec)

    def _command(self, workdir: str) -> List[str]:
        return shlex.split(self.snarkjs) + [
            "groth16",
            "fullprove",
            os.path.join(workdir, "input.json"),
            self.wasm_path,
            self.zkey_path,
            os.path.join(workdir, "proof.json"),
            os.path.join(workdir, "public.json"),
        ]

    def _run(self, cmd: List[str]) -> None:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ProverError(f"snarkjs did not finish within {self.timeout}s") from exc
        except OSError as exc:
            raise ProverError(f"could not start snarkjs ({cmd[0]}): {exc}") from exc
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()[-500:]
            raise ProverError(f"snarkjs exited with status {result.returncode}: {stderr}")

    def prove(self, statement: Statement) -> Tuple[Groth16Proof, List[int]]:
        """
        Generate a proof for a statement.

        The statement is checked first so an unsatisfiable witness fails fast
        with the constraint that broke instead of a prover stack trace.

        Returns:
            (proof, public signals as ints)

        Raises:
            ProofInvalid: the statement does not hold, or snarkjs reported
                public signals other than the statement's
            ProverError: snarkjs failed, is missing, or timed out
        """
        statement.check()
        expected = statement.public_inputs()

        with tempfile.TemporaryDirectory(prefix="shielded-pool-") as workdir:
            with open(os.path.join(workdir, "input.json"), "w") as f:
                json.dump(statement.to_circuit_input(), f)

            start = time.time()
            self._run(self._command(workdir))
            logger.info(f"snarkjs fullprove finished in {time.time() - start:.2f}s")

            try:
                with open(os.path.join(workdir, "proof.json"), "r") as f:
                    proof = Groth16Proof.from_snarkjs(json.load(f))
                with open(os.path.join(workdir, "public.json"), "r") as f:
                    public = [parse_field(v) for v in json.load(f)]
            except (OSError, json.JSONDecodeError) as exc:
                raise ProverError(f"snarkjs produced no readable output: {exc}") from exc

        if public != expected:
            raise ProofInvalid(
                "prover returned public signals that differ from the statement",
                constraint="publicSignals",
            )
        return proof, public
