from pathlib import Path

from ape import project

import deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"
ADDRESS_BOOK_FILEPATH = DEPLOYMENT_DIR / "address_book.json"

#
# Networks
#

LOCAL = "local"
MUMBAI = "mumbai"

LOCAL_BLOCKCHAIN_ENVIRONMENTS = [LOCAL]
SUPPORTED_DOMAINS = [MUMBAI]

#
# Contracts
#

OZ_DEPENDENCY = project.dependencies["openzeppelin"]["5.0.0"]

# EIP1967 Admin slot - https://eips.ethereum.org/EIPS/eip-1967#admin-address
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103

STAKE_CONTRACT_NAME = "Stake"
STAKE_UPGRADE_CONTRACT_NAME = "StakeV2"

#
# Access control
#

# AccessControl.DEFAULT_ADMIN_ROLE
DEFAULT_ADMIN_ROLE = b"\x00" * 32

ROLE_ADMIN_MODEL = "role"
OWNERSHIP_ADMIN_MODEL = "ownership"
