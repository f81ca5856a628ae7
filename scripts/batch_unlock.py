#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from locker.constants import BATCH_UNLOCK_CONFIG_FILEPATH
from locker.options import autosign_option, config_option, proxy_address_option
from locker.params import LockerConfig
from locker.roles import Operator, resolve_proxy_address
from locker.utils import check_plugins


@click.command(cls=ConnectedProviderCommand, name="batch-unlock")
@network_option(required=True)
@account_option()
@config_option(default=BATCH_UNLOCK_CONFIG_FILEPATH)
@proxy_address_option
@autosign_option
def cli(network, account, config_filepath, proxy_address, autosign):
    """Submits the batch unlock request of the config file in a single transaction."""
    check_plugins()
    config = LockerConfig.from_yaml(filepath=config_filepath)
    operator = Operator(config=config, account=account, autosign=autosign)
    proxy_address = resolve_proxy_address(
        config=config, chain_id=network.chain_id, override=proxy_address
    )

    container = operator.get_container(chain_id=network.chain_id)
    operator.batch_unlock(container, proxy_address)


if __name__ == "__main__":
    cli()
