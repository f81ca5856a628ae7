from pathlib import Path

import locker

#
# Filesystem
#

LOCKER_DIR = Path(locker.__file__).parent
PROJECT_ROOT = LOCKER_DIR.parent
CONFIGS_DIR = LOCKER_DIR / "configs"
ARTIFACTS_DIR = LOCKER_DIR / "artifacts"

# hardhat-style compiled contracts (<dir>/**/<Name>.json)
BUILD_ARTIFACTS_DIR = PROJECT_ROOT / "artifacts" / "contracts"

DEPLOY_CONFIG_FILEPATH = CONFIGS_DIR / "deploy.yml"
UPGRADE_CONFIG_FILEPATH = CONFIGS_DIR / "upgrade.yml"
BATCH_UNLOCK_CONFIG_FILEPATH = CONFIGS_DIR / "batch-unlock.yml"

#
# Contracts
#

LOCKER_CONTRACT_NAME = "DualTokenLocker"
INITIALIZER_METHOD_NAME = "initialize"
BATCH_UNLOCK_METHOD_NAME = "batchUnlock"

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"

# EIP1967 slots - https://eips.ethereum.org/EIPS/eip-1967
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC

#
# Networks
#

LOCAL_NETWORKS = ["local"]


def oz_dependency():
    """Returns the OpenZeppelin ape dependency that provides the proxy contracts."""
    from ape import project

    return project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
