#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from locker.constants import DEPLOY_CONFIG_FILEPATH
from locker.options import autosign_option, config_option, verify_option
from locker.params import LockerConfig
from locker.roles import Deployer


@click.command(cls=ConnectedProviderCommand, name="deploy-locker")
@network_option(required=True)
@account_option()
@config_option(default=DEPLOY_CONFIG_FILEPATH)
@autosign_option
@verify_option
def cli(network, account, config_filepath, autosign, verify):
    """
    Deploys the locker template behind a new proxy, initialized with the
    token addresses of the config file, and records it in the registry.

    ape run deploy_locker --network bsc:testnet:node --account deployer
    """
    config = LockerConfig.from_yaml(filepath=config_filepath)
    deployer = Deployer(config=config, account=account, autosign=autosign, verify=verify)

    container = deployer.get_container()
    deployed = deployer.deploy_proxy(container, init_args=config.resolve_init_args())

    deployer.finalize(deployments=[deployed.contract])
    print(f"{config.template} deployed to: {deployed.address}")


if __name__ == "__main__":
    cli()
