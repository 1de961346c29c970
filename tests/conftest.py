"""
Общие фикстуры тестов хранилища рефералов.
"""
import pytest
import pytest_asyncio

from referrals.services import ReferralRepository
from referrals.store import MemoryReferralStore, SqlReferralStore

MEMORY_DSN = "sqlite+aiosqlite://"


@pytest.fixture(params=["sql", "memory"])
def store(request):
    """Оба хранилища: in-memory SQLite и словарный фейк"""
    if request.param == "sql":
        return SqlReferralStore(MEMORY_DSN)
    return MemoryReferralStore()


@pytest_asyncio.fixture
async def repository(store):
    """Репозиторий с готовой схемой; закрывается после теста"""
    await store.create_schema()
    repo = ReferralRepository(store)
    yield repo
    await repo.close()


@pytest_asyncio.fixture
async def memory_repository():
    """Репозиторий поверх словарного хранилища (для тестов подписок)"""
    store = MemoryReferralStore()
    await store.create_schema()
    repo = ReferralRepository(store)
    yield repo
    await repo.close()
