import sys
from pathlib import Path

import pytest

# Ensure the src directory (for `cvault.*`) and this directory (for the shared
# helpers) are on the Python path before collection runs.
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))
sys.path.insert(0, str(Path(__file__).parent))

from cvault.core.config import VaultSettings
from cvault.core.defi.factory import VaultFactory
from cvault.core.ledger import Ledger
from vault_helpers import ADMIN, LOCKER, START_TIME, publish_prices, vault_settings_dict


@pytest.fixture
def settings():
    return VaultSettings.from_dict(vault_settings_dict())


@pytest.fixture
def deployment(settings):
    """Fresh vault deployment with every token priced."""
    factory = VaultFactory(Ledger(timestamp=START_TIME))
    deployed = factory.deploy(settings)
    publish_prices(deployed)
    return deployed


@pytest.fixture
def vault(deployment):
    return deployment.vault


@pytest.fixture
def configured_vault(deployment):
    """Vault with 5% claimer and 10% locker incentives."""
    deployment.vault.set_config(ADMIN, 500, 1000, LOCKER)
    return deployment.vault
