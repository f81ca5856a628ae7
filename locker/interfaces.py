import re
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from ethpm_types import ContractType, MethodABI

from locker.constants import BATCH_UNLOCK_METHOD_NAME

UINT_ARRAY = r"uint\d*\[\]"
ADDRESS = r"address"
BYTES32_ARRAY = r"bytes32\[\]"


def canonical_type(abi_type) -> str:
    """Returns the canonical ABI type string, expanding tuples into their components."""
    if abi_type.components and abi_type.type.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in abi_type.components)
        array_suffix = abi_type.type[len("tuple") :]
        return f"({inner}){array_suffix}"
    return abi_type.type


class CallShape(Enum):
    FLAT = "flat"  # one ABI input per field
    PACKED = "packed"  # a single tuple input holding every field


class InterfaceMismatch(ValueError):
    """Raised when a contract type does not expose an expected entry point"""


class EntryPoint(NamedTuple):
    """An expected contract method, with its inputs given as canonical type patterns."""

    name: str
    inputs: Tuple[str, ...]

    @property
    def signature(self) -> str:
        readable = ",".join(p.replace("\\d*", "").replace("\\", "") for p in self.inputs)
        return f"{self.name}({readable})"

    def shape_of(self, abi: MethodABI) -> Optional[CallShape]:
        """Returns how ``abi`` takes the fields of this entry point, or None if it does not."""
        if abi.name != self.name:
            return None
        if self._matches([canonical_type(i) for i in abi.inputs]):
            return CallShape.FLAT
        if len(abi.inputs) == 1 and abi.inputs[0].components:
            components = abi.inputs[0].components
            if self._matches([canonical_type(c) for c in components]):
                return CallShape.PACKED
        return None

    def _matches(self, types: Sequence[str]) -> bool:
        if len(types) != len(self.inputs):
            return False
        return all(re.fullmatch(p, t) for p, t in zip(self.inputs, types))


BATCH_UNLOCK = EntryPoint(
    name=BATCH_UNLOCK_METHOD_NAME,
    inputs=(
        UINT_ARRAY,  # ids
        UINT_ARRAY,  # amounts A
        ADDRESS,  # recipient
        UINT_ARRAY,  # amounts B
        UINT_ARRAY,  # amounts C
        UINT_ARRAY,  # counts
        BYTES32_ARRAY,  # proofs
    ),
)

LOCKER_INTERFACE: List[EntryPoint] = [BATCH_UNLOCK]


def check_interface(
    contract_type: ContractType, entry_points: Sequence[EntryPoint] = tuple(LOCKER_INTERFACE)
) -> Dict[str, CallShape]:
    """
    Checks that a contract type exposes every entry point and returns
    the call shape of each one, keyed by method name.
    """
    shapes = dict()
    for entry_point in entry_points:
        for abi in contract_type.methods:
            shape = entry_point.shape_of(abi)
            if shape is not None:
                shapes[entry_point.name] = shape
                break
        else:
            raise InterfaceMismatch(
                f"{contract_type.name} does not expose {entry_point.signature}."
            )
    return shapes
