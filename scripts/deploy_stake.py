#!/usr/bin/python3

import click
from ape import networks, project
from ape.cli import ConnectedProviderCommand, account_option, network_option

from deployment.options import (
    address_book_option,
    autosign_option,
    domain_option,
    params_option,
    verify_option,
)
from deployment.params import Deployer
from deployment.utils import load_address_book, params_filepath_from_domain


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@domain_option
@params_option
@address_book_option
@verify_option
@autosign_option
@click.option(
    "--renounce",
    help="Renounce the deployer's admin role once the foundation holds it",
    is_flag=True,
    default=False,
)
def cli(
    network,
    account,
    domain,
    params_filepath,
    address_book_filepath,
    verify,
    autosign,
    renounce,
):
    """Deploy Stake behind a proxy and hand its administration over to the foundation."""
    if not (bool(params_filepath) ^ bool(domain)):
        raise click.BadOptionUsage(
            option_name="--domain",
            message=f"Provide either 'domain' or 'params'; got {domain}, {params_filepath}",
        )
    params_filepath = params_filepath or params_filepath_from_domain(domain=domain)

    constants = None
    if address_book_filepath:
        constants = load_address_book(
            filepath=address_book_filepath, network_name=networks.provider.network.name
        )

    deployer = Deployer.from_yaml(
        filepath=params_filepath,
        constants=constants,
        verify=verify,
        account=account,
        autosign=autosign,
    )

    stake = deployer.deploy(project.Stake)
    print(f"\nStake proxy deployed at {stake.address}")

    deployer.transfer_admin(stake, deployer.constants.DIMO_FOUNDATION, renounce=renounce)

    deployer.finalize(deployments=[stake])


if __name__ == "__main__":
    cli()
