from typing import Any, Dict, List, NamedTuple, Sequence

from eth_typing import ChecksumAddress
from eth_utils import is_hex_address, to_checksum_address
from hexbytes import HexBytes

PROOF_SIZE = 32


class BatchUnlockRequest(NamedTuple):
    """
    A single batched unlock call. Entry ``i`` of the request is described by
    ``ids[i]``, ``amounts_a[i]``, ``amounts_b[i]``, ``amounts_c[i]`` and ``counts[i]``
    for the one ``recipient``, and is authenticated by its slice of ``proofs``.

    ``proofs`` is either one hash per entry or a flattened list of equal-depth
    proofs, ``len(proofs) // len(ids)`` hashes per entry, in entry order.
    """

    ids: List[int]
    amounts_a: List[int]
    recipient: ChecksumAddress
    amounts_b: List[int]
    amounts_c: List[int]
    counts: List[int]
    proofs: List[HexBytes]

    class Invalid(ValueError):
        """Raised when the fields of a batch unlock request are not aligned or malformed"""

    FIELDS = ("ids", "amounts_a", "recipient", "amounts_b", "amounts_c", "counts", "proofs")

    @classmethod
    def create(
        cls,
        ids: Sequence[int],
        amounts_a: Sequence[int],
        recipient: str,
        amounts_b: Sequence[int],
        amounts_c: Sequence[int],
        counts: Sequence[int],
        proofs: Sequence[Any],
    ) -> "BatchUnlockRequest":
        """Normalises and validates the request fields."""
        entries = {
            "ids": _uint_list("ids", ids),
            "amounts_a": _uint_list("amounts_a", amounts_a),
            "amounts_b": _uint_list("amounts_b", amounts_b),
            "amounts_c": _uint_list("amounts_c", amounts_c),
            "counts": _uint_list("counts", counts),
        }
        lengths = {name: len(values) for name, values in entries.items()}
        size = lengths["ids"]
        if size == 0:
            raise cls.Invalid("Batch unlock request has no entries.")
        if len(set(lengths.values())) != 1:
            pretty_lengths = ", ".join(f"{k}={v}" for k, v in lengths.items())
            raise cls.Invalid(f"Batch unlock lists must have equal lengths; got {pretty_lengths}.")

        proof_hashes = [_proof(index, p) for index, p in enumerate(proofs)]
        if not proof_hashes or len(proof_hashes) % size != 0:
            raise cls.Invalid(
                f"Expected {size} proofs (or a whole multiple of it), got {len(proof_hashes)}."
            )

        if not isinstance(recipient, str) or not is_hex_address(recipient):
            raise cls.Invalid(f"Recipient '{recipient}' is not a valid address.")

        return cls(
            recipient=to_checksum_address(recipient),
            proofs=proof_hashes,
            **entries,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchUnlockRequest":
        missing = [field for field in cls.FIELDS if field not in data]
        if missing:
            raise cls.Invalid(f"Batch unlock request is missing field(s): {', '.join(missing)}.")
        unknown = sorted(set(data) - set(cls.FIELDS))
        if unknown:
            raise cls.Invalid(f"Unknown batch unlock request field(s): {', '.join(unknown)}.")
        return cls.create(**{field: data[field] for field in cls.FIELDS})

    @property
    def size(self) -> int:
        return len(self.ids)

    @property
    def proof_depth(self) -> int:
        return len(self.proofs) // self.size

    def proofs_for(self, index: int) -> List[HexBytes]:
        """Returns the proof hashes that authenticate entry ``index``."""
        if not 0 <= index < self.size:
            raise IndexError(f"Entry {index} out of range for a batch of {self.size}.")
        depth = self.proof_depth
        return self.proofs[index * depth : (index + 1) * depth]

    def as_call_args(self) -> List[Any]:
        """Returns the fields in the positional order of the contract call."""
        return [
            list(self.ids),
            list(self.amounts_a),
            self.recipient,
            list(self.amounts_b),
            list(self.amounts_c),
            list(self.counts),
            [bytes(p) for p in self.proofs],
        ]


def _uint_list(name: str, values: Sequence[Any]) -> List[int]:
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise BatchUnlockRequest.Invalid(f"'{name}' must be a list of integers.")
    result = list()
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise BatchUnlockRequest.Invalid(
                f"'{name}' must only contain non-negative integers, got {value!r}."
            )
        result.append(value)
    return result


def _proof(index: int, value: Any) -> HexBytes:
    if not isinstance(value, (str, bytes)):
        raise BatchUnlockRequest.Invalid(
            f"Proof at position {index} must be a hex string, got {type(value).__name__}."
        )
    try:
        proof = HexBytes(value)
    except (TypeError, ValueError):
        raise BatchUnlockRequest.Invalid(f"Proof at position {index} is not valid hex: {value!r}.")
    if len(proof) != PROOF_SIZE:
        raise BatchUnlockRequest.Invalid(
            f"Proof at position {index} must be {PROOF_SIZE} bytes, got {len(proof)}."
        )
    return proof
