import json
from collections import defaultdict
from pathlib import Path
from typing import List, NamedTuple, Optional

from ape.contracts import ContractContainer, ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import ContractType
from web3.types import ABI

from locker.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """Represents a single deployed contract in a locker registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str


def _get_abi(contract_instance: ContractInstance) -> ABI:
    """Returns the ABI of a contract instance."""
    contract_abi = list()
    for entry in contract_instance.contract_type.abi:
        contract_abi.append(entry.model_dump(mode="json", by_alias=True))
    return contract_abi


def _get_entry(contract_instance: ContractInstance) -> RegistryEntry:
    receipt = contract_instance.receipt
    entry = RegistryEntry(
        name=contract_instance.contract_type.name,
        address=to_checksum_address(contract_instance.address),
        abi=_get_abi(contract_instance),
        chain_id=receipt.chain_id,
        tx_hash=receipt.txn_hash,
        block_number=receipt.block_number,
        deployer=receipt.transaction.sender,
    )
    return entry


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                abi=artifacts["abi"],
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts["block_number"],
                deployer=artifacts["deployer"],
            )
            registry_entries.append(registry_entry)
    return registry_entries


def write_registry(
    entries: List[RegistryEntry], filepath: Path, replace: bool = False, silent: bool = False
) -> Path:
    """
    Writes a locker registry to a file, merging it into an existing registry.

    Entries for a chain already present in the existing file are written to a
    sibling ``.unmerged.json`` file, unless ``replace`` is set, in which case the
    existing entries with the same chain and name are overwritten.
    """

    if not entries:
        print("No entries provided.")
        return filepath

    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))

    data = defaultdict(dict)
    for entry in entries:
        entry_abi = list(entry.abi)
        entry_abi.sort(key=lambda d: (d["type"], d.get("name", "")))

        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "abi": entry_abi,
            "tx_hash": entry.tx_hash,
            "block_number": int(entry.block_number),
            "deployer": entry.deployer,
        }

    filepath.parent.mkdir(parents=True, exist_ok=True)

    if filepath.exists():
        if not silent:
            print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)

        overlapping = any(chain_id in existing_data for chain_id in data)
        if overlapping and not replace:
            filepath = filepath.with_suffix(".unmerged.json")
            if not silent:
                print(
                    "Cannot merge registries with overlapping chain IDs.\n"
                    f"Writing to {filepath} to avoid overwriting existing data."
                )
        else:
            for chain_id, chain_entries in data.items():
                existing_data.setdefault(chain_id, dict()).update(chain_entries)
            data = existing_data
    elif not silent:
        print(f"Creating new registry at {filepath}.")

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)

    return filepath


def registry_from_ape_deployments(
    deployments: List[ContractInstance], output_filepath: Path, replace: bool = False
) -> Path:
    """Creates or updates a locker registry from ape deployments."""
    entries = [_get_entry(contract_instance=instance) for instance in deployments]
    output_filepath = write_registry(entries=entries, filepath=output_filepath, replace=replace)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath


def find_entry(filepath: Path, chain_id: ChainId, name: ContractName) -> RegistryEntry:
    """Returns the registry entry of a contract on a chain."""
    if not filepath.exists():
        raise ValueError(f"No registry found at {filepath}")
    for entry in read_registry(filepath=filepath):
        if entry.chain_id == chain_id and entry.name == name:
            return entry
    raise ValueError(f"No {name} entry for chain_id {chain_id} in registry {filepath}")


def container_from_entry(entry: RegistryEntry) -> ContractContainer:
    """Builds a contract container from the ABI recorded in a registry entry."""
    contract_type = ContractType.model_validate({"contractName": entry.name, "abi": entry.abi})
    return ContractContainer(contract_type)


def proxy_address_from_registry(
    filepath: Path, chain_id: ChainId, name: ContractName
) -> Optional[ChecksumAddress]:
    """Returns the recorded address of a contract, or None when it has not been recorded."""
    if not filepath.exists():
        return None
    try:
        entry = find_entry(filepath=filepath, chain_id=chain_id, name=name)
    except ValueError:
        return None
    return to_checksum_address(entry.address)
