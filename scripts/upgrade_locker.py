#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from locker.constants import UPGRADE_CONFIG_FILEPATH
from locker.options import autosign_option, config_option, proxy_address_option, verify_option
from locker.params import LockerConfig
from locker.roles import Upgrader, resolve_proxy_address


@click.command(cls=ConnectedProviderCommand, name="upgrade-locker")
@network_option(required=True)
@account_option()
@config_option(default=UPGRADE_CONFIG_FILEPATH)
@proxy_address_option
@autosign_option
@verify_option
def cli(network, account, config_filepath, proxy_address, autosign, verify):
    """Upgrades the implementation behind an existing locker proxy."""
    config = LockerConfig.from_yaml(filepath=config_filepath)
    upgrader = Upgrader(config=config, account=account, autosign=autosign, verify=verify)
    proxy_address = resolve_proxy_address(
        config=config, chain_id=network.chain_id, override=proxy_address
    )

    container = upgrader.get_container()
    locker = upgrader.upgrade(container, proxy_address)

    upgrader.finalize(deployments=[locker], replace=True)


if __name__ == "__main__":
    cli()
