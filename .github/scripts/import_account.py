#!/usr/bin/env python3

import click
from ape_accounts import import_account_from_private_key


@click.command()
@click.option(
    "--alias",
    help="Alias of the imported keyfile account, as passed to --account",
    envvar="DIMO_DEPLOYER_ALIAS",
    default="DIMO_DEPLOYER",
    show_default=True,
)
@click.option("--passphrase", envvar="DIMO_DEPLOYER_PASSPHRASE", required=True)
@click.option("--private-key", envvar="DIMO_DEPLOYER_PRIVATE_KEY", required=True)
def cli(alias, passphrase, private_key):
    """Imports the deployer key of a CI job into ape's keyfile accounts."""
    account = import_account_from_private_key(alias, passphrase, private_key)
    click.echo(f"Deployer account imported as {alias}: {account.address}")


if __name__ == "__main__":
    cli()
