from types import SimpleNamespace

import pytest
from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
from ape_infura.provider import _API_KEY_ENVIRONMENT_VARIABLE_NAMES
from eth_utils import to_checksum_address

from deployment import utils
from deployment.constants import ADDRESS_BOOK_FILEPATH, MUMBAI
from deployment.params import Deployer
from deployment.utils import (
    _load_json,
    _load_yaml,
    check_etherscan_plugin,
    check_infura_plugin,
    check_plugins,
    load_address_book,
)
from scripts.mumbai import deploy_stake as mumbai_deploy_stake


@pytest.fixture()
def live_network(monkeypatch):
    """Makes the plugin checks see a live network with the given provider and ecosystem."""

    def connect(provider_name="infura", ecosystem_name="polygon"):
        ecosystem = SimpleNamespace(name=ecosystem_name)
        provider = SimpleNamespace(name=provider_name, network=SimpleNamespace(ecosystem=ecosystem))
        monkeypatch.setattr(utils, "is_local_network", lambda: False)
        monkeypatch.setattr(utils, "networks", SimpleNamespace(provider=provider))

    return connect


@pytest.fixture()
def polygonscan_key(monkeypatch):
    envvar = API_KEY_ENV_KEY_MAP["polygon"]
    monkeypatch.delenv(envvar, raising=False)
    return envvar


@pytest.fixture()
def infura_keys(monkeypatch):
    for envvar in _API_KEY_ENVIRONMENT_VARIABLE_NAMES:
        monkeypatch.delenv(envvar, raising=False)
    return _API_KEY_ENVIRONMENT_VARIABLE_NAMES


def test_plugin_checks_skipped_on_local_network(polygonscan_key, infura_keys):
    check_plugins()


def test_etherscan_api_key_required(live_network, polygonscan_key, monkeypatch):
    live_network()
    with pytest.raises(ValueError, match=f"{polygonscan_key} is not set"):
        check_etherscan_plugin()

    monkeypatch.setenv(polygonscan_key, "polygonscan-key")
    check_etherscan_plugin()


def test_etherscan_unknown_ecosystem(live_network):
    live_network(ecosystem_name="no-such-chain")
    with pytest.raises(ValueError, match="No block explorer API key is known for no-such-chain"):
        check_etherscan_plugin()


def test_infura_project_id_required(live_network, infura_keys, monkeypatch):
    live_network()
    with pytest.raises(ValueError, match="is not set"):
        check_infura_plugin()

    # any one of the recognised variables is enough
    monkeypatch.setenv(infura_keys[-1], "infura-project-id")
    check_infura_plugin()


def test_infura_check_only_for_infura_provider(live_network, infura_keys):
    live_network(provider_name="alchemy")
    check_infura_plugin()


def test_check_plugins_on_live_network(live_network, polygonscan_key, infura_keys, monkeypatch):
    live_network()
    monkeypatch.setenv(polygonscan_key, "polygonscan-key")
    with pytest.raises(ValueError):
        check_plugins()

    monkeypatch.setenv(infura_keys[0], "infura-project-id")
    check_plugins()


def test_mumbai_address_book():
    constants = load_address_book(ADDRESS_BOOK_FILEPATH, network_name=MUMBAI)

    raw = _load_json(ADDRESS_BOOK_FILEPATH)[MUMBAI]
    assert constants == {name: to_checksum_address(address) for name, address in raw.items()}

    # the address book provides every constant of the mumbai parameters file
    config = _load_yaml(mumbai_deploy_stake.CONSTRUCTOR_PARAMS_FILEPATH)
    assert set(constants) == set(config["constants"])


def test_mumbai_deployer_uses_address_book(deployer):
    address_book = load_address_book(ADDRESS_BOOK_FILEPATH, network_name=MUMBAI)

    mumbai_deployer = Deployer.from_yaml(
        filepath=mumbai_deploy_stake.CONSTRUCTOR_PARAMS_FILEPATH,
        constants=address_book,
        verify=mumbai_deploy_stake.VERIFY,
        account=deployer,
        autosign=True,
    )

    assert mumbai_deployer.constants._asdict() == address_book
    assert mumbai_deployer.registry_filepath.name == "mumbai.json"
    assert not mumbai_deployer.verify


def test_unknown_address_book_network():
    with pytest.raises(ValueError, match="No addresses found for network 'amoy'"):
        load_address_book(ADDRESS_BOOK_FILEPATH, network_name="amoy")
