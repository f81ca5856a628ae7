from ape import networks

from locker.constants import LOCAL_NETWORKS


def is_local_network() -> bool:
    """Returns True when connected to a local development or forked network."""
    network_name = networks.provider.network.name
    return network_name in LOCAL_NETWORKS or network_name.endswith("-fork")
