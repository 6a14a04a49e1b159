import json
import os
from pathlib import Path
from typing import Dict, List

import yaml
from ape import networks, project
from ape.contracts import ContractContainer, ContractInstance
from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
from eth_utils import to_checksum_address

from deployment.constants import ARTIFACTS_DIR, CONSTRUCTOR_PARAMS_DIR
from deployment.networks import is_local_network


def _load_yaml(filepath: Path) -> dict:
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Registry path named by the 'artifacts' section of a parameters file."""
    artifacts = config.get("artifacts") or dict()
    filename = artifacts.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return Path(artifacts.get("dir", ARTIFACTS_DIR)) / filename


def validate_config(config: Dict) -> Path:
    """
    Checks the required sections of a parameters file and returns its registry path.

    Live networks must match the configured chain_id, and a registry that already
    lists that chain_id is never published to again.
    """
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in params file.")
    if not deployment.get("chain_id"):
        raise ValueError("chain_id is not set in params file.")
    if not config.get("contracts"):
        raise ValueError("Constructor parameters file missing 'contracts' field.")

    chain_id = int(deployment["chain_id"])
    connected_chain_id = networks.provider.network.chain_id
    if chain_id != connected_chain_id and not is_local_network():
        raise ValueError(
            f"chain_id in params file ({chain_id}) does not match "
            f"chain_id of current network ({connected_chain_id})."
        )

    registry_filepath = get_artifact_filepath(config=config)
    if registry_filepath.exists():
        published = {int(published_id) for published_id in _load_json(registry_filepath)}
        if chain_id in published:
            raise ValueError(f"Deployment is already published for chain_id {chain_id}.")

    return registry_filepath


def load_address_book(filepath: Path, network_name: str) -> Dict[str, str]:
    """
    Returns the deployment constants recorded for a network in an address book.

    The address book maps network names to constants, e.g.
    {"mumbai": {"DIMO_TOKEN": "0x...", "DIMO_FOUNDATION": "0x..."}}.
    """
    address_book = _load_json(filepath)
    if network_name not in address_book:
        raise ValueError(f"No addresses found for network '{network_name}' in {filepath}")
    constants = address_book[network_name]
    return {name: to_checksum_address(address) for name, address in constants.items()}


def _require_env(*envvars: str) -> None:
    """At least one of the environment variables must be set."""
    if not any(os.environ.get(envvar) for envvar in envvars):
        raise ValueError(f"{' or '.join(envvars)} is not set.")


def check_etherscan_plugin() -> None:
    """ape-etherscan is installed and the explorer API key is set (live networks only)."""
    if is_local_network():
        return
    try:
        import ape_etherscan  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    ecosystem_name = networks.provider.network.ecosystem.name
    if ecosystem_name not in API_KEY_ENV_KEY_MAP:
        raise ValueError(f"No block explorer API key is known for {ecosystem_name}.")
    _require_env(API_KEY_ENV_KEY_MAP[ecosystem_name])


def check_infura_plugin() -> None:
    """ape-infura is installed and a project id is set, when infura is the provider."""
    if is_local_network() or networks.provider.name != "infura":
        return
    try:
        from ape_infura.provider import _API_KEY_ENVIRONMENT_VARIABLE_NAMES
    except ImportError:
        raise ImportError("Please install the ape-infura plugin to use this script.")
    _require_env(*_API_KEY_ENVIRONMENT_VARIABLE_NAMES)


def check_plugins() -> None:
    print("Checking plugins...")
    check_etherscan_plugin()
    check_infura_plugin()


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name} at {instance.address}...")
        explorer.publish_contract(instance.address)


def get_contract_container(contract: str) -> ContractContainer:
    """Looks a contract up in the project, then in its dependencies."""
    if hasattr(project, contract):
        return getattr(project, contract)

    for dependency_name in (dependency["name"] for dependency in project.config.dependencies):
        versions = project.dependencies[dependency_name]
        if len(versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        (dependency,) = versions.values()
        if hasattr(dependency, contract):
            return getattr(dependency, contract)

    raise ValueError(f"No contract found with name '{contract}'.")


def registry_filepath_from_domain(domain: str) -> Path:
    filepath = ARTIFACTS_DIR / f"{domain}.json"
    if not filepath.exists():
        raise ValueError(f"No registry found for domain '{domain}'")
    return filepath


def params_filepath_from_domain(domain: str, filename: str = "stake.yml") -> Path:
    filepath = CONSTRUCTOR_PARAMS_DIR / domain / filename
    if not filepath.exists():
        raise ValueError(f"No deployment parameters found for domain '{domain}' ({filename})")
    return filepath
