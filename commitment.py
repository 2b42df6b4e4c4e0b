# commitment.py
"""
Commitment / nullifier scheme.

    commitment     = Poseidon(nullifier, secret)
    nullifier_hash = Poseidon(nullifier)

The commitment is published at deposit time and becomes a Merkle leaf. The
nullifier hash is revealed exactly once, at withdrawal, and the registry
refuses to see it twice. The two uses of Poseidon are separated only by
arity (t=3 vs t=2 parameter sets); no extra domain tag is mixed in because
the deployed verifying keys were generated for exactly this form.
"""

import json
import time
from dataclasses import dataclass
from typing import Optional

from errors import InvalidFieldElement
from field_codec import parse_field, random_field_element, to_field
from hash_utils import poseidon_hash


def commit(nullifier: int, secret: int) -> int:
    """Poseidon(nullifier, secret). Argument order matters."""
    return poseidon_hash([to_field(nullifier), to_field(secret)])


def nullifier_hash(nullifier: int) -> int:
    """Poseidon(nullifier), the value spent on withdrawal."""
    return poseidon_hash([to_field(nullifier)])


@dataclass(frozen=True)
class DepositNote:
    """
    Everything a depositor needs to withdraw later.

    Created client side and never escrowed anywhere: losing the note loses
    the funds. After a successful withdrawal the note is dead, any reuse is
    rejected through its nullifier hash.
    """

    nullifier: int
    secret: int
    commitment: int
    nullifier_hash: int
    amount: int
    timestamp: int

    @classmethod
    def generate(cls, amount: int, timestamp: Optional[int] = None) -> "DepositNote":
        """Fresh random secrets for a new deposit (timestamp in milliseconds)."""
        return cls.from_secrets(
            random_field_element(),
            random_field_element(),
            amount,
            timestamp if timestamp is not None else int(time.time() * 1000),
        )

    @classmethod
    def from_secrets(cls, nullifier: int, secret: int, amount: int, timestamp: int) -> "DepositNote":
        return cls(
            nullifier=nullifier,
            secret=secret,
            commitment=commit(nullifier, secret),
            nullifier_hash=nullifier_hash(nullifier),
            amount=amount,
            timestamp=timestamp,
        )

    def to_json(self) -> str:
        # field values as decimal strings, the format wallets already store
        return json.dumps(
            {
                "nullifier": str(self.nullifier),
                "secret": str(self.secret),
                "commitment": str(self.commitment),
                "nullifierHash": str(self.nullifier_hash),
                "amount": self.amount,
                "timestamp": self.timestamp,
            },
            indent=2,
        )

    @classmethod
    def from_json(cls, text: str) -> "DepositNote":
        """
        Parse a serialized note and check it is internally consistent.

        Raises:
            InvalidFieldElement: malformed JSON, missing fields, or a
                commitment / nullifier hash that does not match the secrets
        """
        try:
            data = json.loads(text)
            nullifier = parse_field(data["nullifier"])
            secret = parse_field(data["secret"])
            stored_commitment = parse_field(data["commitment"])
        except (ValueError, KeyError, TypeError) as exc:
            if isinstance(exc, InvalidFieldElement):
                raise
            raise InvalidFieldElement(f"malformed deposit note: {exc}") from exc

        note = cls.from_secrets(
            nullifier,
            secret,
            int(data.get("amount", 0)),
            int(data.get("timestamp", 0)),
        )
        if note.commitment != stored_commitment:
            raise InvalidFieldElement("deposit note commitment does not match its secrets")
        if "nullifierHash" in data and parse_field(data["nullifierHash"]) != note.nullifier_hash:
            raise InvalidFieldElement("deposit note nullifier hash does not match its nullifier")
        return note
