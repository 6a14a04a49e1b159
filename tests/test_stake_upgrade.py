import pytest
from eth_utils import to_checksum_address

from deployment.constants import EIP1967_ADMIN_SLOT
from tests.conftest import LARGE_APPROVAL_AMOUNT, MIN_STAKE_AMOUNT


@pytest.fixture()
def upgrade_stake(project, chain, deployer, stake, oz_dependency):
    def upgrade():
        implementation = deployer.deploy(project.StakeV2)
        admin_slot = chain.provider.get_storage(address=stake.address, slot=EIP1967_ADMIN_SLOT)
        proxy_admin = oz_dependency.ProxyAdmin.at(to_checksum_address(admin_slot[-20:]))
        proxy_admin.upgradeAndCall(stake.address, implementation.address, b"", sender=deployer)
        return project.StakeV2.at(stake.address)

    return upgrade


def test_min_stake_amount_survives_upgrade(stake, upgrade_stake):
    upgraded = upgrade_stake()
    assert upgraded.address == stake.address
    assert upgraded.minStakeAmount() == MIN_STAKE_AMOUNT


def test_new_functions_after_upgrade(stake, upgrade_stake, deployer):
    upgraded = upgrade_stake()

    assert upgraded.helloWorld() == "Hello World"
    assert upgraded.v2variable() == ""

    upgraded.test(sender=deployer)
    assert upgraded.v2variable() == "test"
    assert upgraded.minStakeAmount() == MIN_STAKE_AMOUNT


def test_v1_state_survives_upgrade(dimo_token, stake, upgrade_stake, deployer, user1):
    dimo_token.approve(stake.address, LARGE_APPROVAL_AMOUNT, sender=deployer)
    stake.stake(MIN_STAKE_AMOUNT, sender=deployer)
    stake.setDimoURI("https://dimo.zone/", sender=deployer)
    stake.mint(deployer, sender=deployer)

    state_before = (
        stake.checkUserIsWhitelisted(deployer),
        stake.balanceOf(deployer),
        stake.minStakeAmount(),
        stake.dimoTotalAmountStaked(),
        stake.checkUserStakedBalance(deployer),
        stake.checkUserStakedBalance(user1),
        stake.tokenURI(1),
        stake.name(),
        stake.symbol(),
        stake.dimoToken(),
    )

    upgraded = upgrade_stake()

    state_after = (
        upgraded.checkUserIsWhitelisted(deployer),
        upgraded.balanceOf(deployer),
        upgraded.minStakeAmount(),
        upgraded.dimoTotalAmountStaked(),
        upgraded.checkUserStakedBalance(deployer),
        upgraded.checkUserStakedBalance(user1),
        upgraded.tokenURI(1),
        upgraded.name(),
        upgraded.symbol(),
        upgraded.dimoToken(),
    )
    assert state_after == state_before

    # V1 behaviour keeps working against the upgraded storage
    upgraded.unstake(deployer, MIN_STAKE_AMOUNT, sender=deployer)
    assert upgraded.dimoTotalAmountStaked() == 0
