import pytest
from web3 import Web3

from deployment.snapshot import create_snapshot, revert_to_snapshot

MIN_STAKE_AMOUNT = Web3.to_wei(100_000, "ether")
NEW_MIN_STAKE_AMOUNT = Web3.to_wei(500_000, "ether")
ACCIDENTAL_DIMO = Web3.to_wei(50, "ether")
TEN_DIMO = Web3.to_wei(10, "ether")
LARGE_APPROVAL_AMOUNT = Web3.to_wei(99_999_999_999_999_999_999, "ether")


# Fixtures
@pytest.fixture(scope="session")
def oz_dependency(project):
    return project.dependencies["openzeppelin"]["5.0.0"]


@pytest.fixture(scope="module")
def deployer(accounts):
    return accounts[0]


@pytest.fixture(scope="module")
def user1(accounts):
    return accounts[1]


@pytest.fixture(scope="module")
def user2(accounts):
    return accounts[2]


@pytest.fixture(scope="module")
def dimo_token(project, deployer):
    return deployer.deploy(project.DimoTokenMock, deployer.address)


@pytest.fixture(scope="module")
def stake(project, deployer, dimo_token, oz_dependency):
    contract = deployer.deploy(project.Stake)
    encoded_initializer_function = contract.initialize.encode_input(dimo_token.address)
    proxy = oz_dependency.TransparentUpgradeableProxy.deploy(
        contract.address,
        deployer,
        encoded_initializer_function,
        sender=deployer,
    )
    return project.Stake.at(proxy.address)


@pytest.fixture(autouse=True)
def chain_snapshot():
    """Each test starts from the chain state left by the module fixtures."""
    snapshot_id = create_snapshot()
    yield snapshot_id
    revert_to_snapshot(snapshot_id)
