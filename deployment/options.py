from pathlib import Path

import click

from deployment.constants import STAKE_UPGRADE_CONTRACT_NAME, SUPPORTED_DOMAINS
from deployment.types import ChecksumAddress

domain_option = click.option(
    "--domain",
    "-d",
    help="Deployment domain; selects the parameters file and registry",
    type=click.Choice(SUPPORTED_DOMAINS),
    required=False,
)

params_option = click.option(
    "--params",
    "-p",
    "params_filepath",
    help="Filepath of a deployment parameters YAML file",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

address_book_option = click.option(
    "--address-book",
    "-b",
    "address_book_filepath",
    help="JSON file mapping network names to deployment constants",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

proxy_address_option = click.option(
    "--proxy-address",
    "-x",
    help="Address of the deployed proxy",
    type=ChecksumAddress(),
    required=True,
)

upgrade_contract_option = click.option(
    "--contract-name",
    "-c",
    help="Name of the new implementation contract",
    type=click.STRING,
    default=STAKE_UPGRADE_CONTRACT_NAME,
    show_default=True,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Publish contract sources to the block explorer",
    default=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without prompting",
    is_flag=True,
    default=False,
)
