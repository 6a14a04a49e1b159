#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from deployment.options import (
    autosign_option,
    domain_option,
    params_option,
    proxy_address_option,
    upgrade_contract_option,
    verify_option,
)
from deployment.params import Deployer
from deployment.utils import get_contract_container, params_filepath_from_domain


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@domain_option
@params_option
@proxy_address_option
@upgrade_contract_option
@verify_option
@autosign_option
def cli(network, account, domain, params_filepath, proxy_address, contract_name, verify, autosign):
    """Deploy a new Stake implementation and point an existing proxy at it."""
    if not (bool(params_filepath) ^ bool(domain)):
        raise click.BadOptionUsage(
            option_name="--domain",
            message=f"Provide either 'domain' or 'params'; got {domain}, {params_filepath}",
        )
    params_filepath = params_filepath or params_filepath_from_domain(
        domain=domain, filename="upgrade-stake.yml"
    )

    deployer = Deployer.from_yaml(
        filepath=params_filepath, verify=verify, account=account, autosign=autosign
    )

    upgraded = deployer.upgrade(get_contract_container(contract_name), proxy_address)
    print(f"\n{upgraded.address} now runs {contract_name}")

    # the proxy itself is unchanged; only the new implementation is published
    implementation = deployer.get_deployment(contract_name)
    deployer.finalize(deployments=[implementation])


if __name__ == "__main__":
    cli()
