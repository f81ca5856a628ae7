from types import SimpleNamespace
from typing import NamedTuple

import pytest
from ape.utils import EMPTY_BYTES32
from eth_utils import to_checksum_address
from ethpm_types import ContractType
from hexbytes import HexBytes

from locker.constants import EIP1967_ADMIN_SLOT, EIP1967_IMPLEMENTATION_SLOT

LOCKER_NAME = "DualTokenLocker"
CHAIN_ID = 1337

# digits only, so they are already in checksum form
DEPLOYER_ADDRESS = "0x9999999999999999999999999999999999999999"
DOR_TOKEN_ADDRESS = "0x1111111111111111111111111111111111111111"
GOLD_TOKEN_ADDRESS = "0x2222222222222222222222222222222222222222"
RECIPIENT_ADDRESS = "0x3333333333333333333333333333333333333333"

PROOF_1 = "0x2bd0ef0ded916b5ac67e3bfa4672cda2482facd385c3ab80ed5ec2bab767a7ad"
PROOF_2 = "0x2e8ee23aaf7133fb68304eb857c356a0d4d00fcd0c4abddd132504f45e789c32"
PROOF_3 = "0xec3e043a6404eb57851c7d0b87491b183dc0c5dd360ad0b40c10fd9bba8a9b96"


def _input(name, _type, **kwargs):
    return {"name": name, "type": _type, "internalType": _type, **kwargs}


BATCH_UNLOCK_INPUTS = [
    _input("ids", "uint256[]"),
    _input("amountsA", "uint256[]"),
    _input("recipient", "address"),
    _input("amountsB", "uint256[]"),
    _input("amountsC", "uint256[]"),
    _input("counts", "uint256[]"),
    _input("proofs", "bytes32[]"),
]

INITIALIZE_ABI = {
    "type": "function",
    "name": "initialize",
    "stateMutability": "nonpayable",
    "inputs": [_input("dorToken", "address"), _input("goldToken", "address")],
    "outputs": [],
}

FLAT_BATCH_UNLOCK_ABI = {
    "type": "function",
    "name": "batchUnlock",
    "stateMutability": "nonpayable",
    "inputs": BATCH_UNLOCK_INPUTS,
    "outputs": [],
}

PACKED_BATCH_UNLOCK_ABI = {
    "type": "function",
    "name": "batchUnlock",
    "stateMutability": "nonpayable",
    "inputs": [
        {
            "name": "batch",
            "type": "tuple",
            "internalType": "struct DualTokenLocker.UnlockBatch",
            "components": BATCH_UNLOCK_INPUTS,
        }
    ],
    "outputs": [],
}

PROXY_ABI = [
    {
        "type": "constructor",
        "stateMutability": "payable",
        "inputs": [
            _input("_logic", "address"),
            _input("initialOwner", "address"),
            _input("_data", "bytes"),
        ],
    }
]

PROXY_ADMIN_ABI = [
    {
        "type": "function",
        "name": "upgradeAndCall",
        "stateMutability": "payable",
        "inputs": [
            _input("proxy", "address"),
            _input("implementation", "address"),
            _input("data", "bytes"),
        ],
        "outputs": [],
    }
]


def make_contract_type(name, abi) -> ContractType:
    return ContractType.model_validate({"contractName": name, "abi": abi})


def locker_abi(packed: bool = False, initializer: bool = True):
    abi = [PACKED_BATCH_UNLOCK_ABI if packed else FLAT_BATCH_UNLOCK_ABI]
    if initializer:
        abi.append(INITIALIZE_ABI)
    return abi


# Test doubles standing in for ape accounts, containers and the chain


class FakeReceipt(NamedTuple):
    txn_hash: str


class FakeLedger:
    """Records deployments and transactions and holds proxy storage slots."""

    def __init__(self):
        self.deployments = list()
        self.transactions = list()
        self.storage = dict()
        self._nonce = 0

    @property
    def provider(self):
        return self

    def new_address(self) -> str:
        self._nonce += 1
        return to_checksum_address(f"0x{self._nonce + 0x1000:040x}")

    def set_address_slot(self, address, slot, value) -> None:
        padded = b"\x00" * 12 + bytes(HexBytes(value))
        self.storage[(to_checksum_address(address), slot)] = HexBytes(padded)

    def get_storage_at(self, address, slot):
        return self.storage.get((to_checksum_address(address), slot), HexBytes(EMPTY_BYTES32))


class FakeMethod:
    def __init__(self, contract, name):
        self.contract = contract
        self.name = name
        self.abis = [abi for abi in contract.contract_type.methods if abi.name == name]

    def __str__(self):
        return self.name

    def __call__(self, *args, sender=None):
        ledger = self.contract.ledger
        ledger.transactions.append((self.contract.address, self.name, args, sender))
        hook = self.contract.hooks.get(self.name)
        if hook:
            hook(*args)
        return FakeReceipt(txn_hash=f"0x{len(ledger.transactions):064x}")

    def encode_input(self, *args) -> bytes:
        return f"{self.name}({','.join(str(a) for a in args)})".encode()


class FakeInstance:
    def __init__(self, contract_type, address, ledger, hooks):
        self.contract_type = contract_type
        self.address = address
        self.ledger = ledger
        self.hooks = hooks
        self.receipt = SimpleNamespace(
            chain_id=CHAIN_ID,
            txn_hash=f"0x{int(address, 16):064x}",
            block_number=42,
            transaction=SimpleNamespace(sender=DEPLOYER_ADDRESS),
        )

    def __getattr__(self, name):
        if any(abi.name == name for abi in self.contract_type.methods):
            return FakeMethod(self, name)
        raise AttributeError(name)


class FakeContainer:
    def __init__(self, contract_type, ledger, hooks=None, on_deploy=None):
        self.contract_type = contract_type
        self.ledger = ledger
        self.hooks = hooks or dict()
        self.on_deploy = on_deploy

    def at(self, address):
        return FakeInstance(self.contract_type, to_checksum_address(address), self.ledger, self.hooks)


class FakeAccount:
    def __init__(self, ledger, address=DEPLOYER_ADDRESS):
        self.ledger = ledger
        self.address = address
        self.autosign = None

    def set_autosign(self, enabled):
        self.autosign = enabled

    def deploy(self, container, *args, publish=False):
        address = self.ledger.new_address()
        self.ledger.deployments.append((container.contract_type.name, address, args, publish))
        if container.on_deploy:
            container.on_deploy(address, *args)
        return container.at(address)


# Fixtures


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def account(ledger):
    return FakeAccount(ledger)


@pytest.fixture
def oz(ledger):
    def upgrade(proxy, implementation, data):
        ledger.set_address_slot(proxy, EIP1967_IMPLEMENTATION_SLOT, implementation)

    def deploy_proxy(address, logic, initial_owner, data):
        ledger.set_address_slot(address, EIP1967_ADMIN_SLOT, ledger.new_address())
        ledger.set_address_slot(address, EIP1967_IMPLEMENTATION_SLOT, logic)

    proxy = FakeContainer(
        make_contract_type("TransparentUpgradeableProxy", PROXY_ABI),
        ledger,
        on_deploy=deploy_proxy,
    )
    proxy_admin = FakeContainer(
        make_contract_type("ProxyAdmin", PROXY_ADMIN_ABI),
        ledger,
        hooks={"upgradeAndCall": upgrade},
    )
    return SimpleNamespace(TransparentUpgradeableProxy=proxy, ProxyAdmin=proxy_admin)


@pytest.fixture
def locker_container(ledger):
    return FakeContainer(make_contract_type(LOCKER_NAME, locker_abi()), ledger)


@pytest.fixture
def environ():
    return {
        "DOR_DISTR_TOKEN_ADDRESS": DOR_TOKEN_ADDRESS,
        "GOLD_DISTR_TOKEN_ADDRESS": GOLD_TOKEN_ADDRESS,
    }


@pytest.fixture
def batch_data():
    return {
        "ids": [7, 8, 9],
        "amounts_a": [4, 4, 4],
        "recipient": RECIPIENT_ADDRESS,
        "amounts_b": [100000, 100000, 100000],
        "amounts_c": [100000, 100000, 100000],
        "counts": [3, 3, 3],
        "proofs": [PROOF_1, PROOF_2, PROOF_3] * 3,
    }
