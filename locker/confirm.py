from collections import OrderedDict

from ape.utils import ZERO_ADDRESS


def _abort() -> None:
    print("Aborting deployment!")
    exit(-1)


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    answer = input(f"Deploy {contract_name} Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _confirm_zero_address() -> None:
    answer = input("Zero Address detected for initialization argument; Continue? Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _confirm_initialization(init_args: OrderedDict, contract_name: str) -> None:
    """Asks the user to confirm the resolved initialization arguments of a proxied contract."""
    if len(init_args) == 0:
        print(f"\n(i) No initialization arguments for {contract_name}")
        _confirm_deployment(contract_name)
        return

    print(f"\nInitialization arguments for {contract_name}")
    contains_zero_address = False
    for name, resolved_value in init_args.items():
        print(f"\t{name}={resolved_value}")
        if not contains_zero_address:
            contains_zero_address = resolved_value == ZERO_ADDRESS
    _confirm_deployment(contract_name)
    if contains_zero_address:
        _confirm_zero_address()
