#!/usr/bin/python3

from pathlib import Path

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option
from ape.contracts import ContractInstance

from deployment.options import domain_option
from deployment.registry import contracts_from_registry
from deployment.utils import get_contract_container, registry_filepath_from_domain, verify_contracts


def _implementation_of(instance: ContractInstance) -> ContractInstance:
    """Proxies are verified through the implementation they point at."""
    proxy_info = networks.provider.network.ecosystem.get_proxy_info(instance.address)
    if not proxy_info:
        return instance
    name = instance.contract_type.name
    print(f"{name} is a proxy; verifying implementation at {proxy_info.target}")
    return get_contract_container(name).at(proxy_info.target)


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@domain_option
@click.option(
    "--registry-filepath",
    "-f",
    help="Registry to read instead of the domain registry",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)
@click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Registry name of a contract to verify; repeatable",
    type=click.STRING,
    required=True,
    multiple=True,
)
def cli(network, domain, registry_filepath, contract_names):
    """Publish the sources of registry-listed contracts to the block explorer."""
    if bool(registry_filepath) == bool(domain):
        raise click.BadOptionUsage(
            option_name="--domain",
            message=(
                f"Provide either 'domain' or 'registry-filepath'; "
                f"got {domain}, {registry_filepath}"
            ),
        )
    registry_filepath = registry_filepath or registry_filepath_from_domain(domain=domain)

    chain_id = networks.active_provider.chain_id
    contracts = contracts_from_registry(registry_filepath, chain_id=chain_id)
    missing = [name for name in contract_names if name not in contracts]
    if missing:
        raise ValueError(
            f"{', '.join(missing)} not found in registry {registry_filepath} for chain {chain_id}"
        )

    verify_contracts([_implementation_of(contracts[name]) for name in contract_names])


if __name__ == "__main__":
    cli()
