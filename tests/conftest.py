import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from pathlib import Path

import pytest

from credstore.auth.passwords import CredentialHasher
from credstore.config import Settings
from credstore.infra.persistence import PersistenceGateway
from credstore.service import AuthenticationFacade
from credstore.store import CredentialStore


@pytest.fixture(scope="session")
def hasher() -> CredentialHasher:
    # Minimal argon2 cost keeps the suite fast.
    return CredentialHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture()
def users_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "users.yml"


@pytest.fixture()
def gateway(users_path: Path) -> PersistenceGateway:
    return PersistenceGateway(users_path)


@pytest.fixture()
def facade(hasher, gateway) -> AuthenticationFacade:
    f = AuthenticationFacade(CredentialStore(), hasher, gateway)
    f.on_start()
    return f


@pytest.fixture()
def settings(users_path: Path) -> Settings:
    return Settings(users_path=users_path, secret_key="test-secret")
