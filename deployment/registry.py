import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from web3.types import ABI

from deployment.utils import _load_json, get_contract_container

ChainId = int
ContractName = str

STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """A single deployed contract, as recorded in a registry file."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    abi: ABI
    tx_hash: str
    block_number: int
    deployer: str

    @classmethod
    def from_instance(cls, instance: ContractInstance, name: ContractName) -> "RegistryEntry":
        receipt = instance.receipt
        return cls(
            chain_id=receipt.chain_id,
            name=name,
            address=to_checksum_address(instance.address),
            abi=[abi.model_dump(mode="json", by_alias=True) for abi in instance.contract_type.abi],
            tx_hash=receipt.txn_hash,
            block_number=receipt.block_number,
            deployer=receipt.transaction.sender,
        )

    def artifacts(self) -> Dict:
        """JSON body of the entry; ABI items are sorted by type, then name."""
        return {
            "address": self.address,
            "abi": sorted(self.abi, key=lambda item: (item["type"], item.get("name", ""))),
            "tx_hash": self.tx_hash,
            "block_number": int(self.block_number),
            "deployer": self.deployer,
        }


def read_registry(filepath: Path) -> List[RegistryEntry]:
    return [
        RegistryEntry(chain_id=int(chain_id), name=name, **artifacts)
        for chain_id, contracts in _load_json(filepath).items()
        for name, artifacts in contracts.items()
    ]


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """
    Writes registry entries to a file, grouped by chain id and sorted by name.

    An existing file gains the new chain ids. If any chain id is already in it,
    the file is left untouched and the entries go to a sibling ``.unmerged.json``
    file instead. Returns the path actually written.
    """
    if not entries:
        print("No entries provided.")
        return filepath

    data = defaultdict(dict)
    for entry in sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name)):
        data[str(entry.chain_id)][entry.name] = entry.artifacts()

    filepath.parent.mkdir(parents=True, exist_ok=True)
    if not filepath.exists():
        print(f"Creating new registry at {filepath}.")
    else:
        existing = _load_json(filepath)
        overlap = sorted(set(existing) & set(data))
        if overlap:
            filepath = filepath.with_suffix(".unmerged.json")
            print(
                f"Registry already has chain id(s) {', '.join(overlap)}; "
                f"writing to {filepath} instead of overwriting."
            )
        else:
            print(f"Updating existing registry at {filepath}.")
            existing.update(data)
            data = existing

    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)
    return filepath


def registry_from_ape_deployments(
    deployments: List[ContractInstance],
    output_filepath: Path,
    registry_names: Optional[Dict[ContractName, ContractName]] = None,
) -> Path:
    """
    Records ape contract instances in a registry. ``registry_names`` renames
    contract types in the registry, e.g. a mock published under the real name.
    """
    registry_names = registry_names or dict()
    entries = list()
    for instance in deployments:
        contract_name = instance.contract_type.name
        entries.append(
            RegistryEntry.from_instance(instance, registry_names.get(contract_name, contract_name))
        )
    output_filepath = write_registry(entries=entries, filepath=output_filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath


def contracts_from_registry(filepath: Path, chain_id: ChainId) -> Dict[str, ContractInstance]:
    """Contract instances recorded for one chain, keyed by registry name."""
    return {
        entry.name: get_contract_container(entry.name).at(entry.address)
        for entry in read_registry(filepath=filepath)
        if entry.chain_id == chain_id
    }
