import typing
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from pathlib import Path
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Tuple

from ape import chain, networks
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from ape.utils import EMPTY_BYTES32, ZERO_ADDRESS
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import MethodABI
from web3.auto import w3

from deployment.confirm import _confirm_resolution, _continue
from deployment.constants import (
    EIP1967_ADMIN_SLOT,
    OWNERSHIP_ADMIN_MODEL,
    OZ_DEPENDENCY,
    ROLE_ADMIN_MODEL,
)
from deployment.registry import registry_from_ape_deployments
from deployment.utils import (
    _load_yaml,
    check_plugins,
    get_contract_container,
    validate_config,
    verify_contracts,
)

CONSTRUCTOR_KEY = "constructor"
PROXY_KEY = "proxy"
PROXY_CONTRACT_TYPE_KEY = "contract_type"

# stands in for $encode: calldata until the encoded contract is deployed
UNRESOLVED_CALLDATA = b"\xde\xad\xbe\xef"


class DeploymentSession:
    """The account and the contracts of a single deployment run."""

    def __init__(self, account: Optional[AccountAPI] = None):
        self.account = account
        self.implementations: Dict[str, ContractInstance] = dict()
        self.proxies: Dict[str, ContractInstance] = dict()

    def lookup(self, contract_name: str, prefer_proxy: bool = True) -> Optional[ContractInstance]:
        if prefer_proxy and contract_name in self.proxies:
            return self.proxies[contract_name]
        return self.implementations.get(contract_name)


class ResolutionContext(NamedTuple):
    session: DeploymentSession
    contract_names: List[str]
    contract_name: str
    constants: Dict[str, Any]
    prefer_proxy: bool = True


#
# Variables
#


class Variable(ABC):
    PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, value: Any) -> bool:
        return isinstance(value, str) and value.startswith(cls.PREFIX)

    @staticmethod
    def parse(value: str, context: ResolutionContext) -> "Variable":
        """
        Builds the variable for a "$..." value:

            $deployer               address of the deploying account
            $encode:method,arg,...  calldata for a method of the configured contract
            $UPPER_CASE             entry of the 'constants' section
            $ContractName           address of a contract deployed by this run
        """
        name = value[len(Variable.PREFIX) :]
        if name == DeployerAddress.NAME:
            return DeployerAddress(context)
        if name.startswith(EncodedCall.NAME_PREFIX):
            return EncodedCall(name[len(EncodedCall.NAME_PREFIX) :], context)
        if name.isupper():
            return Constant(name, context)
        return ContractAddress(name, context)


class DeployerAddress(Variable):
    NAME = "deployer"

    def __init__(self, context: ResolutionContext):
        self.session = context.session

    def resolve(self) -> Any:
        if self.session.account is None:
            return ZERO_ADDRESS
        return self.session.account.address


class Constant(Variable):
    def __init__(self, name: str, context: ResolutionContext):
        if name not in context.constants:
            raise ValueError(f"Constant '{name}' not found in deployment file.")
        self.value = context.constants[name]

    def resolve(self) -> Any:
        return self.value


class ContractAddress(Variable):
    def __init__(self, contract_name: str, context: ResolutionContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")
        self.contract_name = contract_name
        self.session = context.session
        self.prefer_proxy = context.prefer_proxy

    def resolve(self) -> Any:
        instance = self.session.lookup(self.contract_name, prefer_proxy=self.prefer_proxy)
        if instance is None:
            # not deployed yet (eager validation)
            return ZERO_ADDRESS
        return instance.address


class EncodedCall(Variable):
    """ABI-encoded call to a method of the contract being configured, e.g. its initializer."""

    NAME_PREFIX = "encode:"

    def __init__(self, call: str, context: ResolutionContext):
        self.method_name, *raw_args = call.split(",")
        self.args = [parse_value(arg, context) for arg in raw_args]
        self.contract_name = context.contract_name
        self.session = context.session

        container = get_contract_container(self.contract_name)
        method_abis = [
            abi for abi in container.contract_type.methods if abi.name == self.method_name
        ]
        match_method_args(method_abis, [resolve_value(arg) for arg in self.args])

    def resolve(self) -> Any:
        instance = self.session.implementations.get(self.contract_name)
        if instance is None:
            return UNRESOLVED_CALLDATA
        method = getattr(instance, self.method_name)
        return method.encode_input(*[resolve_value(arg) for arg in self.args])


def parse_value(value: Any, context: ResolutionContext) -> Any:
    """Turns "$..." strings, also inside lists, into variables; anything else is a literal."""
    if isinstance(value, list):
        return [parse_value(item, context) for item in value]
    if Variable.is_variable(value):
        return Variable.parse(value, context)
    return value


def parse_values(values: Dict[str, Any], context: ResolutionContext) -> OrderedDict:
    return OrderedDict((name, parse_value(value, context)) for name, value in values.items())


def resolve_value(value: Any) -> Any:
    if isinstance(value, list):
        return [resolve_value(item) for item in value]
    if isinstance(value, Variable):
        return value.resolve()
    return value


def resolve_values(values: OrderedDict) -> OrderedDict:
    return OrderedDict((name, resolve_value(value)) for name, value in values.items())


#
# ABI checks
#


def match_method_args(method_abis: List[MethodABI], args: typing.Sequence[Any]) -> Dict[str, Any]:
    """Returns the args keyed by input name, using the first overload that can encode them."""
    if not method_abis:
        raise ValueError("No method abis provided for validation of args")

    for abi in method_abis:
        if len(abi.inputs) != len(args):
            continue
        if all(w3.is_encodable(abi_input.type, arg) for abi_input, arg in zip(abi.inputs, args)):
            return {abi_input.name: arg for abi_input, arg in zip(abi.inputs, args)}

    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def check_constructor_args(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_args: OrderedDict,
    invalid: typing.Type[Exception],
) -> None:
    """Constructor args must follow the ABI inputs by count, name and position, and encode."""
    if len(resolved_args) != len(abi_inputs):
        raise invalid(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_args)}."
        )

    for position, (abi_input, (name, value)) in enumerate(zip(abi_inputs, resolved_args.items())):
        if abi_input.name != name:
            raise invalid(
                f"{contract_name} constructor parameter '{name}' at position {position} does not "
                f"match the expected ABI name '{abi_input.name}'."
            )
        if not w3.is_encodable(abi_input.type, value):
            raise invalid(
                f"{contract_name} constructor parameter '{name}' has a value '{value}' "
                f"that cannot be encoded as '{abi_input.type}'."
            )


#
# Parameters
#


def _contract_entries(config: Dict) -> List[Tuple[str, Dict]]:
    """(name, settings) for each item of 'contracts'; items are a name or a single-key mapping."""
    entries = list()
    for item in config["contracts"]:
        if isinstance(item, str):
            entries.append((item, dict()))
        elif isinstance(item, dict) and len(item) == 1:
            ((name, settings),) = item.items()
            settings = settings or dict()
            if not isinstance(settings, dict):
                raise ValueError(f"Malformed parameters for {name}.")
            entries.append((name, settings))
        else:
            raise ValueError("Malformed constructor parameters YAML.")
    return entries


def _contract_contexts(
    config: Dict, session: DeploymentSession, prefer_proxy: bool = True
) -> Iterator[Tuple[str, Dict, ResolutionContext]]:
    entries = _contract_entries(config)
    contract_names = [name for name, _ in entries]
    constants = config.get("constants") or dict()
    for name, settings in entries:
        context = ResolutionContext(
            session=session,
            contract_names=contract_names,
            contract_name=name,
            constants=constants,
            prefer_proxy=prefer_proxy,
        )
        yield name, settings, context


class ConstructorParameters:
    """Constructor arguments of every contract listed in a parameters file."""

    class Invalid(Exception):
        """Raised when the constructor parameters are invalid"""

    def __init__(self, parameters: OrderedDict):
        self.parameters = parameters
        for contract_name, values in parameters.items():
            container = get_contract_container(contract_name)
            check_constructor_args(
                contract_name=contract_name,
                abi_inputs=container.constructor.abi.inputs,
                resolved_args=resolve_values(values),
                invalid=self.Invalid,
            )

    @classmethod
    def from_config(
        cls, config: Dict, session: Optional[DeploymentSession] = None
    ) -> "ConstructorParameters":
        print("Processing contract constructor parameters...")
        session = session or DeploymentSession()
        parameters = OrderedDict()
        for name, settings, context in _contract_contexts(config, session):
            parameters[name] = parse_values(settings.get(CONSTRUCTOR_KEY) or dict(), context)
        return cls(parameters=parameters)

    def resolve(self, contract_name: str) -> OrderedDict:
        if contract_name not in self.parameters:
            raise ValueError(f"{contract_name} is not listed in the deployment parameters.")
        return resolve_values(self.parameters[contract_name])


class ProxyParameters:
    """
    Contracts to deploy behind a TransparentUpgradeableProxy.

    The proxy constructor defaults to ``_logic=$<contract>``, ``initialOwner=$deployer``
    and empty ``_data``; a parameters file may override ``initialOwner`` and ``_data``.
    """

    class Invalid(Exception):
        """Raised when the proxy parameters are invalid"""

    class ProxyInfo(NamedTuple):
        contract_type_container: ContractContainer
        constructor_params: OrderedDict

    def __init__(self, contracts_proxy_info: OrderedDict):
        self.contracts_proxy_info = contracts_proxy_info
        proxy_container = OZ_DEPENDENCY.TransparentUpgradeableProxy
        for proxy_info in contracts_proxy_info.values():
            check_constructor_args(
                contract_name=proxy_container.contract_type.name,
                abi_inputs=proxy_container.constructor.abi.inputs,
                resolved_args=resolve_values(proxy_info.constructor_params),
                invalid=self.Invalid,
            )

    @classmethod
    def from_config(
        cls, config: Dict, session: Optional[DeploymentSession] = None
    ) -> "ProxyParameters":
        print("Processing proxy parameters...")
        session = session or DeploymentSession()
        contracts_proxy_info = OrderedDict()
        # _logic is the implementation, never an earlier proxy
        for name, settings, context in _contract_contexts(config, session, prefer_proxy=False):
            if PROXY_KEY in settings:
                contracts_proxy_info[name] = cls._proxy_info(settings[PROXY_KEY] or dict(), context)
        return cls(contracts_proxy_info=contracts_proxy_info)

    @classmethod
    def _proxy_info(cls, proxy_settings: Dict, context: ResolutionContext) -> ProxyInfo:
        overrides = proxy_settings.get(CONSTRUCTOR_KEY) or dict()
        if "_logic" in overrides:
            raise cls.Invalid(
                "'_logic' parameter cannot be specified: "
                "it is implicitly the contract being proxied"
            )

        constructor_args = OrderedDict(
            [("_logic", f"${context.contract_name}"), ("initialOwner", "$deployer"), ("_data", b"")]
        )
        constructor_args.update(overrides)

        contract_type = proxy_settings.get(PROXY_CONTRACT_TYPE_KEY, context.contract_name)
        return cls.ProxyInfo(
            contract_type_container=get_contract_container(contract_type),
            constructor_params=parse_values(constructor_args, context),
        )

    def contract_needs_proxy(self, contract_name: str) -> bool:
        return contract_name in self.contracts_proxy_info

    def resolve(self, contract_name: str) -> Tuple[ContractContainer, OrderedDict]:
        """Returns the type to wrap the proxy as, and the resolved proxy constructor args."""
        if contract_name not in self.contracts_proxy_info:
            raise ValueError(f"Unexpected contract to proxy: {contract_name}")
        proxy_info = self.contracts_proxy_info[contract_name]
        return proxy_info.contract_type_container, resolve_values(proxy_info.constructor_params)


#
# Execution
#


def get_admin_model(contract: ContractInstance) -> str:
    """Returns the access-control model of a contract, judged from its ABI."""
    method_names = {abi.name for abi in contract.contract_type.methods}
    if {"DEFAULT_ADMIN_ROLE", "grantRole"} <= method_names:
        return ROLE_ADMIN_MODEL
    if "transferOwnership" in method_names:
        return OWNERSHIP_ADMIN_MODEL
    raise ValueError(
        f"{contract.contract_type.name} has neither role-based access control nor an owner."
    )


class Transactor:
    """An ape account whose transactions are validated and printed before being sent."""

    def __init__(self, account: Optional[AccountAPI] = None, autosign: bool = False):
        self._account = account if account is not None else select_account()
        self._autosign = autosign
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        if hasattr(self._account, "set_autosign"):
            # only keyfile accounts prompt before signing
            self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        return self._account

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = match_method_args(method_abis=method.abis, args=args)
        contract = method.contract
        print(f"\nTransacting {contract.contract_type.name}[{contract.address[:10]}].{method}")
        for name, value in named_args.items():
            print(f"\t{name}={value}")
        if not self._autosign:
            _continue()

        return method(*args, sender=self._account)

    def transfer_admin(
        self, contract: ContractInstance, new_admin: ChecksumAddress, renounce: bool = False
    ) -> ReceiptAPI:
        """
        Hands administration of a contract over to another address.

        Access-controlled contracts grant DEFAULT_ADMIN_ROLE to the new admin and,
        if requested, the transactor then renounces its own admin role.
        Ownable contracts transfer ownership, which implies the renounce.
        """
        new_admin = to_checksum_address(new_admin)
        if get_admin_model(contract) == OWNERSHIP_ADMIN_MODEL:
            return self.transact(contract.transferOwnership, new_admin)

        admin_role = contract.DEFAULT_ADMIN_ROLE()
        receipt = self.transact(contract.grantRole, admin_role, new_admin)
        if renounce:
            self.transact(contract.renounceRole, admin_role, self._account.address)
        return receipt


class Deployer(Transactor):
    """
    Deploys the contracts of a parameters file with a single account,
    proxied where configured, and publishes them to a registry.
    """

    def __init__(
        self,
        config: Dict,
        path: Path,
        verify: bool,
        account: Optional[AccountAPI] = None,
        autosign: bool = False,
    ):
        super().__init__(account, autosign)
        check_plugins()

        self.config = config
        self.path = path
        self.verify = verify
        self.session = DeploymentSession(account=self._account)

        self.registry_filepath = validate_config(config=config)
        self.constructor_parameters = ConstructorParameters.from_config(config, self.session)
        self.proxy_parameters = ProxyParameters.from_config(config, self.session)

        # constants as attributes, e.g. deployer.constants.DIMO_TOKEN
        constants = config.get("constants") or dict()
        self.constants = namedtuple("Constants", list(constants))(**constants)

        self._print_deployment_info()
        if not self._autosign:
            _continue()

    @classmethod
    def from_yaml(
        cls, filepath: Path, constants: Optional[Dict] = None, *args, **kwargs
    ) -> "Deployer":
        """Loads a parameters file; ``constants`` take precedence over the file's own."""
        config = _load_yaml(filepath)
        if constants:
            config["constants"] = {**(config.get("constants") or dict()), **constants}
        return cls(config=config, path=filepath, *args, **kwargs)

    def get_deployment(self, contract_name: str) -> Optional[ContractInstance]:
        """Implementation of a contract deployed by this deployer."""
        return self.session.implementations.get(contract_name)

    def get_proxy(self, contract_name: str) -> Optional[ContractInstance]:
        """Proxy of a contract deployed or upgraded by this deployer, typed as the contract."""
        return self.session.proxies.get(contract_name)

    def deploy(self, container: ContractContainer) -> ContractInstance:
        """
        Deploys a contract with its resolved constructor parameters. Contracts configured
        with a proxy are then put behind a TransparentUpgradeableProxy, and the proxy
        (typed as the contract) is returned instead of the implementation.
        """
        contract_name = container.contract_type.name
        instance = self._deploy(container, self.constructor_parameters.resolve(contract_name))
        self.session.implementations[contract_name] = instance
        if not self.proxy_parameters.contract_needs_proxy(contract_name):
            return instance

        wrapper_container, proxy_args = self.proxy_parameters.resolve(contract_name)
        proxy = self._deploy(OZ_DEPENDENCY.TransparentUpgradeableProxy, proxy_args)
        print(
            f"\nWrapping {contract_name} proxy at {proxy.address} "
            f"as {wrapper_container.contract_type.name}."
        )
        wrapped = wrapper_container.at(proxy.address, txn_hash=proxy.txn_hash)
        self.session.proxies[contract_name] = wrapped
        return wrapped

    def _deploy(self, container: ContractContainer, resolved_args: OrderedDict) -> ContractInstance:
        contract_name = container.contract_type.name
        print(f"\nDeploying {contract_name}...")
        if not self._autosign:
            _confirm_resolution(resolved_args, contract_name)
        return self._account.deploy(container, *resolved_args.values())

    def get_proxy_admin(self, proxy_address: ChecksumAddress) -> ContractInstance:
        """The ProxyAdmin recorded in the EIP-1967 admin slot of a proxy."""
        admin_slot = chain.provider.get_storage(address=proxy_address, slot=EIP1967_ADMIN_SLOT)
        if admin_slot == EMPTY_BYTES32:
            raise ValueError(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )
        return OZ_DEPENDENCY.ProxyAdmin.at(to_checksum_address(admin_slot[-20:]))

    def upgrade(self, container: ContractContainer, proxy_address, data=b"") -> ContractInstance:
        """Deploys a new implementation and points the proxy at it."""
        return self.upgradeTo(self.deploy(container), proxy_address, data)

    def upgradeTo(
        self, implementation: ContractInstance, proxy_address, data=b""
    ) -> ContractInstance:
        proxy_address = to_checksum_address(proxy_address)
        proxy_admin = self.get_proxy_admin(proxy_address)
        owner = proxy_admin.owner()
        if owner != self._account.address:
            raise ValueError(
                f"ProxyAdmin at {proxy_admin.address} is owned by {owner}, "
                f"not by the deployer {self._account.address}."
            )

        self.transact(proxy_admin.upgradeAndCall, proxy_address, implementation.address, data)

        contract_name = implementation.contract_type.name
        upgraded = get_contract_container(contract_name).at(proxy_address)
        self.session.proxies[contract_name] = upgraded
        return upgraded

    def finalize(self, deployments: List[ContractInstance]) -> None:
        """Writes the deployments to the registry and, if enabled, verifies their sources."""
        registry_from_ape_deployments(
            deployments=deployments,
            output_filepath=self.registry_filepath,
        )
        if self.verify:
            verify_contracts(contracts=deployments)

    def _print_deployment_info(self):
        network = networks.provider.network
        print(
            f"Account: {self._account.address}",
            f"Config: {self.path}",
            f"Registry: {self.registry_filepath}",
            f"Verify: {self.verify}",
            f"Network: {network.ecosystem.name}:{network.name} (chain id {network.chain_id})",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )
