#!/usr/bin/python3

from ape import project

from deployment.constants import ADDRESS_BOOK_FILEPATH, CONSTRUCTOR_PARAMS_DIR, MUMBAI
from deployment.params import Deployer
from deployment.utils import load_address_book

VERIFY = False
CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "mumbai" / "stake.yml"


def main():
    """
    This script deploys the proxied Stake contract on Mumbai and grants
    the default admin role to the DIMO foundation.

    ape run mumbai deploy_stake --network polygon:mumbai:infura
    """

    deployer = Deployer.from_yaml(
        filepath=CONSTRUCTOR_PARAMS_FILEPATH,
        constants=load_address_book(ADDRESS_BOOK_FILEPATH, network_name=MUMBAI),
        verify=VERIFY,
    )

    stake = deployer.deploy(project.Stake)

    deployer.transfer_admin(stake, deployer.constants.DIMO_FOUNDATION)

    deployments = [
        # proxy only (implementation has same contract name so not included)
        stake,
    ]

    deployer.finalize(deployments=deployments)
