import os
import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, List, Optional

from ape.api import AccountAPI
from ape.utils import ZERO_ADDRESS
from dotenv import load_dotenv
from eth_typing import ChecksumAddress
from eth_utils import is_hex_address, to_checksum_address
from ethpm_types import MethodABI
from web3.auto import w3

from locker.batch import BatchUnlockRequest
from locker.constants import ARTIFACTS_DIR, LOCKER_CONTRACT_NAME
from locker.interfaces import canonical_type
from locker.utils import _load_yaml

DEFAULT_REGISTRY_FILENAME = "registry.json"


class VariableContext:
    def __init__(
        self,
        constants: typing.Dict[str, Any] = None,
        environ: typing.Mapping[str, str] = None,
    ):
        self.constants = constants or dict()
        self.environ = os.environ if environ is None else environ


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    __ACCOUNT: Optional[AccountAPI] = None

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    @classmethod
    def set_account(cls, account: AccountAPI) -> None:
        cls.__ACCOUNT = account

    def resolve(self) -> Any:
        if self.__ACCOUNT is None:
            return ZERO_ADDRESS
        return self.__ACCOUNT.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise LockerConfig.Invalid(f"Constant '{constant_name}' not found in config file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a config constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


class EnvironmentVariable(Variable):
    """A value read once, when the configuration is loaded, from the process environment."""

    ENV_PREFIX = "env:"

    def __init__(self, variable: str, context: VariableContext):
        self.name = variable[len(self.ENV_PREFIX) :]
        value = context.environ.get(self.name)
        if value is None:
            raise LockerConfig.Invalid(f"Environment variable {self.name} is not set.")
        self.value = value

    @classmethod
    def is_environment_variable(cls, value: str) -> bool:
        return value.startswith(cls.ENV_PREFIX)

    def resolve(self) -> Any:
        return self.value


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]

    if isinstance(value, Variable):
        return value.resolve()

    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)

    return resolved_parameters


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(Variable.VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif EnvironmentVariable.is_environment_variable(variable):
        return EnvironmentVariable(variable, context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    raise LockerConfig.Invalid(f"Variable ${variable} is not resolvable.")


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: OrderedDict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _validate_method_args(
    method_abis: List[MethodABI], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for position, (arg, abi_input) in enumerate(zip(args, abi.inputs)):
            if not w3.is_encodable(canonical_type(abi_input), arg):
                break
            named_args[abi_input.name or f"_{position}"] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _validate_initializer_inputs(
    contract_name: str,
    initializer: MethodABI,
    resolved_parameters: OrderedDict,
    check_names: bool = True,
) -> None:
    """Validates the initialization arguments against the initializer ABI."""
    abi_inputs = initializer.inputs
    if len(resolved_parameters) != len(abi_inputs):
        raise LockerConfig.Invalid(
            f"Initialization arguments length mismatch - "
            f"{contract_name}.{initializer.name} requires {len(abi_inputs)}, "
            f"Got {len(resolved_parameters)}."
        )

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        if check_names and abi_input.name != name:
            raise LockerConfig.Invalid(
                f"{contract_name} initialization argument '{name}' at position {position} does "
                f"not match the expected ABI name '{abi_input.name}'."
            )

        if not w3.is_encodable(canonical_type(abi_input), value):
            raise LockerConfig.Invalid(
                f"Initialization argument '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{canonical_type(abi_input)}'"
            )


def _checksum(value: Any, field: str) -> Optional[ChecksumAddress]:
    if value is None:
        return None
    if not isinstance(value, str) or not is_hex_address(value):
        raise LockerConfig.Invalid(f"'{field}' is not a valid address: {value!r}.")
    return to_checksum_address(value)


class LockerConfig:
    """
    Everything a locker command needs, read once at start-up from a YAML file:
    the contract template, an optional proxy address, the initialization arguments
    of a first deployment and an optional batch unlock request.
    """

    class Invalid(ValueError):
        """Raised when the configuration file is malformed or not resolvable"""

    TEMPLATE_KEY = "template"
    PROXY_ADDRESS_KEY = "proxy_address"
    INIT_ARGS_KEY = "init_args"
    BATCH_UNLOCK_KEY = "batch_unlock"

    def __init__(
        self,
        template: str = LOCKER_CONTRACT_NAME,
        init_args: Optional[OrderedDict] = None,
        init_args_named: bool = False,
        proxy_address: Optional[ChecksumAddress] = None,
        batch_unlock: Optional[BatchUnlockRequest] = None,
        chain_id: Optional[int] = None,
        registry_filepath: Optional[Path] = None,
        build_dir: Optional[Path] = None,
        path: Optional[Path] = None,
    ):
        self.template = template
        self.init_args = init_args or OrderedDict()
        self.init_args_named = init_args_named
        self.proxy_address = proxy_address
        self.batch_unlock = batch_unlock
        self.chain_id = chain_id
        self.registry_filepath = registry_filepath or ARTIFACTS_DIR / DEFAULT_REGISTRY_FILENAME
        self.build_dir = build_dir
        self.path = path

    @classmethod
    def from_yaml(
        cls, filepath: Path, environ: Optional[typing.Mapping[str, str]] = None
    ) -> "LockerConfig":
        if environ is None:
            load_dotenv()
        config = _load_yaml(filepath)
        return cls.from_dict(config=config, environ=environ, path=filepath)

    @classmethod
    def from_dict(
        cls,
        config: typing.Dict,
        environ: Optional[typing.Mapping[str, str]] = None,
        path: Optional[Path] = None,
    ) -> "LockerConfig":
        if not isinstance(config, dict):
            raise cls.Invalid("Malformed config file.")

        context = VariableContext(constants=cls._section(config, "constants"), environ=environ)

        template = config.get(cls.TEMPLATE_KEY, LOCKER_CONTRACT_NAME)
        if not isinstance(template, str) or not template:
            raise cls.Invalid(f"'{cls.TEMPLATE_KEY}' must be a contract name.")

        init_args, init_args_named = cls._process_init_args(config.get(cls.INIT_ARGS_KEY), context)

        proxy_address = _checksum(
            _resolve_param(_process_raw_value(config.get(cls.PROXY_ADDRESS_KEY), context)),
            field=cls.PROXY_ADDRESS_KEY,
        )

        batch_unlock = None
        batch_data = config.get(cls.BATCH_UNLOCK_KEY)
        if batch_data is not None:
            if not isinstance(batch_data, dict):
                raise cls.Invalid(f"'{cls.BATCH_UNLOCK_KEY}' must be a mapping.")
            processed = _process_raw_values(OrderedDict(batch_data), context)
            batch_unlock = BatchUnlockRequest.from_dict(_resolve_params(processed))

        deployment = cls._section(config, "deployment")
        chain_id = deployment.get("chain_id")
        artifacts = cls._section(config, "artifacts")
        registry_filepath = None
        if artifacts:
            registry_dir = Path(artifacts.get("dir", ARTIFACTS_DIR))
            registry_filepath = registry_dir / artifacts.get("filename", DEFAULT_REGISTRY_FILENAME)
        build = cls._section(config, "build")
        build_dir = Path(build["dir"]) if build.get("dir") else None

        return cls(
            template=template,
            init_args=init_args,
            init_args_named=init_args_named,
            proxy_address=proxy_address,
            batch_unlock=batch_unlock,
            chain_id=int(chain_id) if chain_id is not None else None,
            registry_filepath=registry_filepath,
            build_dir=build_dir,
            path=path,
        )

    @classmethod
    def _section(cls, config: typing.Dict, key: str) -> typing.Dict:
        section = config.get(key) or dict()
        if not isinstance(section, dict):
            raise cls.Invalid(f"'{key}' must be a mapping.")
        return section

    @classmethod
    def _process_init_args(
        cls, raw_args: Any, context: VariableContext
    ) -> typing.Tuple[OrderedDict, bool]:
        if raw_args is None:
            return OrderedDict(), False
        if isinstance(raw_args, list):
            values = OrderedDict((f"_{i}", v) for i, v in enumerate(raw_args))
            return _process_raw_values(values, context), False
        if isinstance(raw_args, dict):
            return _process_raw_values(OrderedDict(raw_args), context), True
        raise cls.Invalid(f"'{cls.INIT_ARGS_KEY}' must be a list or a mapping.")

    def resolve_init_args(self) -> OrderedDict:
        """Resolves the initialization arguments for a first deployment."""
        return _resolve_params(self.init_args)
