import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

SERVICE_DIR = Path(__file__).resolve().parents[1]
ROOT_DIR = SERVICE_DIR.parent.parent

service_path = str(SERVICE_DIR)
shared_path = str(ROOT_DIR / "services")
for path in (service_path, shared_path):
    if path in sys.path:
        sys.path.remove(path)
    sys.path.insert(0, path)

for module_name in list(sys.modules):
    if module_name == "app" or module_name.startswith("app."):
        sys.modules.pop(module_name)

os.environ.setdefault("SALON_DATABASE_URL", f"sqlite:///{SERVICE_DIR / 'test_salon.db'}")
os.environ["REDIS_URL"] = ""
os.environ.pop("REMOTE_SYNC_URL", None)
os.environ.pop("NOTIFY_WEBHOOK_URL", None)

from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.core.scope import TenantScope  # noqa: E402
from app.services.tenant_directory import OwnerCredentials, TenantDirectory  # noqa: E402
from shared.kvstore import SqlKeyValueStore  # noqa: E402

# Tuesday, mid-day UTC
NOW = datetime(2026, 11, 10, 18, 0, tzinfo=timezone.utc)
OWNER_PASSWORD = "Secreta123!"


class FakeClock:
    """Deterministic ``utcnow`` replacement."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def prepare_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return SqlKeyValueStore(SessionLocal)


@pytest.fixture
def scope():
    return TenantScope("t-test")


@pytest.fixture
def directory(store, clock):
    return TenantDirectory(store, clock=clock)


@pytest.fixture
def owner(directory):
    result = directory.register_owner("ana@bellavita.mx", OWNER_PASSWORD, "Ana", "López")
    assert result.success, result.error
    return result.data


@pytest.fixture
def tenant(directory, owner):
    result = directory.create_tenant(
        {"name": "Bella Vita Spa", "slug": "bella-vita", "business_type": "spa"},
        owner.id,
        OwnerCredentials("Ana", "López", owner.email, OWNER_PASSWORD),
    )
    assert result.success, result.error
    return result.data


@pytest.fixture
def contexts(store, clock):
    from app.context import SalonContextFactory

    return SalonContextFactory(store, clock=clock)


@pytest.fixture
def ctx(contexts, tenant):
    return contexts.build(tenant)
