#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, account_option, network_option

from deployment.constants import DEFAULT_ADMIN_ROLE, STAKE_CONTRACT_NAME, SUPPORTED_DOMAINS
from deployment.params import Transactor
from deployment.registry import contracts_from_registry
from deployment.types import ChecksumAddress
from deployment.utils import check_plugins, registry_filepath_from_domain


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@click.option(
    "--domain",
    "-d",
    help="Deployment domain",
    type=click.Choice(SUPPORTED_DOMAINS),
    required=True,
)
@click.option(
    "--grant-address",
    "-g",
    help="Address to grant the default admin role",
    type=ChecksumAddress(),
    required=True,
)
def cli(network, account, domain, grant_address):
    """Grant DEFAULT_ADMIN_ROLE on the registered Stake contract."""
    check_plugins()
    transactor = Transactor(account)
    registry_filepath = registry_filepath_from_domain(domain=domain)
    deployments = contracts_from_registry(
        filepath=registry_filepath, chain_id=networks.active_provider.chain_id
    )
    stake = deployments[STAKE_CONTRACT_NAME]
    transactor.transact(stake.grantRole, DEFAULT_ADMIN_ROLE, grant_address)


if __name__ == "__main__":
    cli()
