# main_prove_verify.py
"""
Example driver that ties everything together:

- Fill a deposit accumulator with random commitments plus one real note.
- Build the withdraw statement for that note and check every constraint.
- Put the note into an association set and build the innocence statement.
- If snarkjs and the circuit artifacts are available, prove and submit both.
"""

import logging
import os
import random
from typing import List, Optional, Tuple

from commitment import DepositNote
from config import ProtocolConfig, setup_logging
from field_codec import random_field_element, short_hex
from groth16 import VerifyingKey
from innocence_circuit import InnocenceStatement
from pool import ShieldedPool
from proof_codec import compress_proof
from prover import SnarkjsProver
from withdraw_circuit import WithdrawStatement

logger = logging.getLogger(__name__)

DEMO_ASSOCIATION_SET = 0


def generate_random_commitments(num_leaves: int) -> List[int]:
    """Random field elements standing in for other people's deposits."""
    return [random_field_element() for _ in range(num_leaves)]


def run_demo(
    config: ProtocolConfig,
    num_leaves: int = 16,
    prove: bool = False,
) -> Tuple[DepositNote, WithdrawStatement, InnocenceStatement]:
    """
    Walk one note through deposit, withdraw and proof of innocence.

    Off-chain flow:
    ├─ other deposits -> accumulator
    ├─ our note: commitment = Poseidon(nullifier, secret) -> accumulator
    ├─ snapshot -> withdraw statement (root, nullifierHash, recipient, ...)
    ├─ provider approves our commitment -> association set
    └─ snapshot + set tree -> innocence statement

    With prove=True each statement goes through snarkjs and the compressed
    proof is submitted to a pool holding the circuits' verifying keys.

    num_leaves is capped so the other deposits plus the note fit the tree.
    """
    if prove:
        pool = ShieldedPool(
            config,
            withdraw_vk=VerifyingKey.load(config.prover.withdraw_vkey),
            innocence_vk=VerifyingKey.load(config.prover.innocence_vkey),
        )
    else:
        pool = ShieldedPool(config)

    num_leaves = min(num_leaves, pool.accumulator.capacity - 1)
    others = generate_random_commitments(num_leaves)
    position = random.randrange(num_leaves + 1)
    note = DepositNote.generate(amount=1_000_000_000)

    for commitment in others[:position]:
        pool.deposit(commitment)
    index = pool.deposit(note.commitment)
    for commitment in others[position:]:
        pool.deposit(commitment)
    logger.info(f"Note deposited at leaf {index} of {len(pool.accumulator)}")

    recipient = random_field_element()
    withdraw = pool.withdraw_witness(note, recipient=recipient)
    withdraw.check()
    logger.info(f"Withdraw statement holds for root {short_hex(withdraw.public.root)}")

    association_set = pool.association_sets.get(DEMO_ASSOCIATION_SET)
    for commitment in random.sample(others, k=min(3, len(others))):
        association_set.add(commitment)
    association_set.add(note.commitment)

    innocence = pool.innocence_witness(note, DEMO_ASSOCIATION_SET)
    innocence.check()
    logger.info(f"Innocence statement holds for set {association_set.name!r}")

    if prove:
        withdraw_proof, withdraw_public = SnarkjsProver.for_withdraw(config.prover).prove(withdraw)
        pool.process_withdrawal(compress_proof(withdraw_proof), withdraw_public)

        innocence_proof, innocence_public = SnarkjsProver.for_innocence(config.prover).prove(innocence)
        pool.process_innocence(compress_proof(innocence_proof), innocence_public)

    return note, withdraw, innocence


def main(config: Optional[ProtocolConfig] = None) -> None:
    config = ProtocolConfig.from_env(config or ProtocolConfig.default_demo())
    errors = config.validate()
    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")
    setup_logging(config.log)

    artifacts = (
        config.prover.withdraw_zkey,
        config.prover.innocence_zkey,
        config.prover.withdraw_vkey,
        config.prover.innocence_vkey,
    )
    prove = all(os.path.exists(path) for path in artifacts)
    if not prove:
        logger.info("Circuit artifacts not found, checking statements without proving")
    run_demo(config, prove=prove)


if __name__ == "__main__":
    main()
