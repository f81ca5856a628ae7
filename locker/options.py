from pathlib import Path

import click

from locker.types import ChecksumAddress


def config_option(default: Path):
    return click.option(
        "--config",
        "-c",
        "config_filepath",
        help="Path to the YAML configuration file.",
        type=click.Path(dir_okay=False, exists=True, path_type=Path),
        default=default,
        show_default=True,
    )


proxy_address_option = click.option(
    "--proxy-address",
    "-p",
    help="Address of the deployed proxy; overrides the configuration and the registry.",
    type=ChecksumAddress(),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Sign transactions without asking for confirmation.",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify",
    help="Publish deployed contracts to the block explorer.",
    is_flag=True,
    default=False,
)
