import typing
from collections import OrderedDict
from typing import List, NamedTuple, Optional

from ape import chain, networks
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance, ContractTransactionHandler
from ape.utils import EMPTY_BYTES32
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address
from ethpm_types import MethodABI

from locker.batch import BatchUnlockRequest
from locker.confirm import _confirm_initialization, _confirm_deployment, _continue
from locker.constants import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    INITIALIZER_METHOD_NAME,
    oz_dependency,
)
from locker.interfaces import BATCH_UNLOCK, CallShape, check_interface
from locker.params import (
    DeployerAccount,
    LockerConfig,
    _validate_initializer_inputs,
    _validate_method_args,
)
from locker.registry import (
    container_from_entry,
    find_entry,
    proxy_address_from_registry,
    registry_from_ape_deployments,
)
from locker.utils import check_plugins, get_contract_container, validate_chain_id, verify_contracts


class DeployedProxy(NamedTuple):
    """A freshly deployed proxy: the template-typed handle, its address and its implementation."""

    contract: ContractInstance
    address: ChecksumAddress
    implementation: ContractInstance


def resolve_proxy_address(
    config: LockerConfig, chain_id: int, override: Optional[str] = None
) -> ChecksumAddress:
    """
    Returns the proxy address to act upon: an explicit override first, then the
    configured address and finally the address recorded in the registry.
    """
    if override:
        return to_checksum_address(override)
    if config.proxy_address:
        return config.proxy_address
    address = proxy_address_from_registry(
        filepath=config.registry_filepath, chain_id=chain_id, name=config.template
    )
    if address is None:
        raise ValueError(
            f"No proxy address for {config.template}: set 'proxy_address' in the config file "
            f"or record a deployment for chain_id {chain_id} in {config.registry_filepath}."
        )
    return address


def _read_address_slot(address: ChecksumAddress, slot: int) -> bytes:
    return chain.provider.get_storage_at(address=address, slot=slot)


class Transactor:
    """
    Represents an ape account plus validated/annotated transaction execution.
    """

    def __init__(self, account: typing.Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def transact(self, method: ContractTransactionHandler, *args) -> ReceiptAPI:
        named_args = _validate_method_args(method_abis=method.abis, args=args)
        base_message = (
            f"\nTransacting {method.contract.contract_type.name}"
            f"[{method.contract.address[:10]}].{method}"
        )
        if named_args:
            pretty_args = "\n\t".join(f"{k}={v}" for k, v in named_args.items())
            message = f"{base_message} with arguments:\n\t{pretty_args}"
        else:
            message = f"{base_message} with no arguments"
        print(message)
        if not self._autosign:
            _continue()

        return method(*args, sender=self._account)


class Deployer(Transactor):
    """
    Deploys a contract template behind a new EIP1967 transparent proxy,
    initializing it exactly once.
    """

    def __init__(
        self,
        config: LockerConfig,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        verify: bool = False,
    ):
        super().__init__(account, autosign)

        check_plugins()
        validate_chain_id(config.chain_id)
        self.config = config
        self.verify = verify
        DeployerAccount.set_account(self._account)
        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    def get_container(self, contract_name: Optional[str] = None) -> ContractContainer:
        """Resolves a contract template, the configured one by default."""
        return get_contract_container(
            contract_name or self.config.template, build_dir=self.config.build_dir
        )

    def deploy(self, container: ContractContainer) -> ContractInstance:
        """Deploys a bare implementation contract."""
        contract_name = container.contract_type.name
        if not self._autosign:
            _confirm_deployment(contract_name)
        return self._account.deploy(container, publish=self.verify)

    def deploy_proxy(
        self, container: ContractContainer, init_args: Optional[OrderedDict] = None
    ) -> DeployedProxy:
        contract_name = container.contract_type.name
        init_args = OrderedDict() if init_args is None else init_args

        initializer = self._select_initializer(container, init_args)

        implementation = self.deploy(container)
        data = b""
        if initializer is not None:
            data = getattr(implementation, initializer.name).encode_input(*init_args.values())

        proxy_container = oz_dependency().TransparentUpgradeableProxy
        print(
            f"\nDeploying {proxy_container.contract_type.name} "
            f"contract to proxy {contract_name}."
        )
        if not self._autosign:
            _confirm_deployment(proxy_container.contract_type.name)
        proxy_contract = self._account.deploy(
            proxy_container,
            implementation.address,
            self._account.address,  # initial owner of the proxy admin
            data,
            publish=self.verify,
        )
        print(
            f"\nWrapping {contract_name} into {proxy_contract.contract_type.name} "
            f"at {proxy_contract.address}."
        )
        instance = container.at(proxy_contract.address)
        return DeployedProxy(
            contract=instance,
            address=to_checksum_address(proxy_contract.address),
            implementation=implementation,
        )

    def _select_initializer(
        self, container: ContractContainer, init_args: OrderedDict
    ) -> Optional[MethodABI]:
        """Validates the init args against the template initializer, before anything is deployed."""
        contract_name = container.contract_type.name
        initializers = [
            abi
            for abi in container.contract_type.methods
            if abi.name == INITIALIZER_METHOD_NAME and len(abi.inputs) == len(init_args)
        ]
        if not initializers:
            if init_args:
                raise LockerConfig.Invalid(
                    f"{contract_name} has no {INITIALIZER_METHOD_NAME} method "
                    f"taking {len(init_args)} argument(s)."
                )
            print(f"\n(i) {contract_name} is not initialized on deployment")
            return None

        _validate_initializer_inputs(
            contract_name=contract_name,
            initializer=initializers[0],
            resolved_parameters=init_args,
            check_names=self.config.init_args_named,
        )
        if not self._autosign:
            _confirm_initialization(init_args, contract_name)
        return initializers[0]

    def finalize(self, deployments: List[ContractInstance], replace: bool = False) -> None:
        """
        Records the deployments in the registry and optionally publishes them to block explorers.
        """
        registry_from_ape_deployments(
            deployments=deployments,
            output_filepath=self.config.registry_filepath,
            replace=replace,
        )
        if self.verify:
            verify_contracts(contracts=deployments)

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Config: {self.config.path}",
            f"Template: {self.config.template}",
            f"Registry: {self.config.registry_filepath}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )


class Upgrader(Deployer):
    """
    Replaces the implementation behind an existing proxy, keeping its address
    and storage. Initialization arguments are never forwarded.
    """

    def upgrade(self, container: ContractContainer, proxy_address: str) -> ContractInstance:
        if self.config.init_args:
            print(
                f"WARNING: Ignoring {len(self.config.init_args)} initialization argument(s); "
                "an upgrade does not re-initialize the proxy."
            )
        implementation = self.deploy(container)
        return self.upgrade_to(container, implementation, proxy_address)

    def upgrade_to(
        self, container: ContractContainer, implementation: ContractInstance, proxy_address: str
    ) -> ContractInstance:
        proxy_address = to_checksum_address(proxy_address)
        admin_slot = _read_address_slot(proxy_address, EIP1967_ADMIN_SLOT)
        if admin_slot == EMPTY_BYTES32:
            raise ValueError(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )

        admin_address = to_checksum_address(admin_slot[-20:])
        proxy_admin = oz_dependency().ProxyAdmin.at(admin_address)

        self.transact(proxy_admin.upgradeAndCall, proxy_address, implementation.address, b"")

        implementation_slot = _read_address_slot(proxy_address, EIP1967_IMPLEMENTATION_SLOT)
        current_implementation = to_checksum_address(implementation_slot[-20:])
        if current_implementation != to_checksum_address(implementation.address):
            raise ValueError(
                f"Proxy at {proxy_address} points to {current_implementation} after the upgrade, "
                f"expected {implementation.address}."
            )

        print(f"{container.contract_type.name} upgrade to: {proxy_address}")
        return container.at(proxy_address)


class Operator(Transactor):
    """Submits batch unlock transactions to a deployed locker proxy."""

    def __init__(
        self,
        config: LockerConfig,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
    ):
        super().__init__(account, autosign)
        self.config = config

    def get_container(self, chain_id: int) -> ContractContainer:
        """
        Resolves the configured template, falling back to the ABI recorded in the registry.
        """
        try:
            return get_contract_container(self.config.template, build_dir=self.config.build_dir)
        except ValueError:
            if not self.config.registry_filepath.exists():
                raise
            entry = find_entry(
                filepath=self.config.registry_filepath,
                chain_id=chain_id,
                name=self.config.template,
            )
            return container_from_entry(entry)

    def batch_unlock(
        self,
        container: ContractContainer,
        proxy_address: str,
        request: Optional[BatchUnlockRequest] = None,
    ) -> ReceiptAPI:
        request = request or self.config.batch_unlock
        if request is None:
            raise LockerConfig.Invalid("No batch unlock request to submit.")

        shape = check_interface(container.contract_type, [BATCH_UNLOCK])[BATCH_UNLOCK.name]
        locker = container.at(to_checksum_address(proxy_address))
        method = getattr(locker, BATCH_UNLOCK.name)
        print(
            f"\nSubmitting {BATCH_UNLOCK.name} of {request.size} entries "
            f"({len(request.proofs)} proofs) for {request.recipient}"
        )
        for index, entry_id in enumerate(request.ids):
            proofs = ", ".join(f"0x{bytes(p).hex()[:8]}..." for p in request.proofs_for(index))
            print(f"\t{index}. id={entry_id} count={request.counts[index]} proofs=[{proofs}]")

        args = request.as_call_args()
        if shape is CallShape.PACKED:
            receipt = self.transact(method, args)
        else:
            receipt = self.transact(method, *args)
        print(f"(i) {BATCH_UNLOCK.name} confirmed in transaction {receipt.txn_hash}")
        return receipt
