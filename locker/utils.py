import json
import os
from pathlib import Path
from typing import List, Optional

import yaml
from ape import networks, project
from ape.contracts import ContractContainer, ContractInstance
from ethpm_types import ContractType

from locker.constants import BUILD_ARTIFACTS_DIR
from locker.networks import is_local_network


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def validate_chain_id(chain_id: Optional[int]) -> None:
    """Checks that the configured chain_id matches the connected network, if one is set."""
    if chain_id is None:
        return
    connected_chain_id = networks.provider.network.chain_id
    if int(chain_id) != connected_chain_id and not is_local_network():
        raise ValueError(
            f"chain_id in config file ({chain_id}) does not match "
            f"chain_id of current network ({connected_chain_id})."
        )


def check_etherscan_plugin() -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the appropriate API key environment variable is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    api_key = os.environ.get(explorer_envvar)
    if not api_key:
        raise ValueError(f"{explorer_envvar} is not set.")


def check_infura_plugin() -> None:
    """Checks that the ape-infura plugin is installed."""
    if is_local_network():
        return  # unnecessary for local deployment
    if networks.provider.name != "infura":
        return  # unnecessary when using a provider different than infura
    try:
        from ape_infura.provider import _ENVIRONMENT_VARIABLE_NAMES
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use this script.")
    for envvar in _ENVIRONMENT_VARIABLE_NAMES:
        if os.environ.get(envvar):
            break
    else:
        raise ValueError(
            f"No Infura API key found in "
            f"environment variables: {', '.join(_ENVIRONMENT_VARIABLE_NAMES)}"
        )


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()
    check_infura_plugin()


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(instance.address)


def _get_dependency_contract_container(contract: str) -> Optional[ContractContainer]:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            return getattr(dependency_api, contract)
        except AttributeError:
            continue
    return None


def contract_type_from_artifact(filepath: Path) -> ContractType:
    """Builds a contract type from a hardhat-style compiled artifact."""
    artifact = _load_json(filepath)
    try:
        data = {
            "contractName": artifact["contractName"],
            "abi": artifact["abi"],
            "deploymentBytecode": {"bytecode": artifact["bytecode"]},
        }
    except KeyError as e:
        raise ValueError(f"Malformed compiled artifact at {filepath}: missing {e}.")
    if artifact.get("deployedBytecode"):
        data["runtimeBytecode"] = {"bytecode": artifact["deployedBytecode"]}
    return ContractType.model_validate(data)


def _get_artifact_contract_container(
    contract: str, build_dir: Path
) -> Optional[ContractContainer]:
    if not build_dir.is_dir():
        return None
    candidates = [p for p in build_dir.rglob(f"{contract}.json") if p.is_file()]
    if not candidates:
        return None
    if len(candidates) > 1:
        found = ", ".join(str(p) for p in candidates)
        raise ValueError(f"Ambiguous compiled artifacts for '{contract}': {found}")
    return ContractContainer(contract_type_from_artifact(candidates[0]))


def get_contract_container(
    contract: str, build_dir: Optional[Path] = None
) -> ContractContainer:
    """
    Resolves a contract name to a deployable container. The ape project is searched
    first, then its dependencies and finally the compiled artifacts directory.
    """
    try:
        return getattr(project, contract)
    except AttributeError:
        pass

    contract_container = _get_dependency_contract_container(contract)
    if contract_container is None:
        contract_container = _get_artifact_contract_container(
            contract, build_dir or BUILD_ARTIFACTS_DIR
        )
    if contract_container is None:
        raise ValueError(f"No contract found with name '{contract}'.")
    return contract_container


def get_chain_name(chain_id: int) -> str:
    """Returns the name of the chain given its chain ID."""
    for ecosystem_name, ecosystem in networks.ecosystems.items():
        for network_name, network in ecosystem.networks.items():
            if network.chain_id == chain_id:
                return f"{ecosystem_name} {network_name}"
    raise ValueError(f"Chain ID {chain_id} not found in networks.")
