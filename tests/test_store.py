"""
Тесты хранилищ: схема, транзакции, «сырые» операции без бизнес-правил.
"""
import pytest

from referrals.models import ReferralRecord
from referrals.store import (
    MemoryReferralStore,
    SqlReferralStore,
    StoreError,
    StoreSetupError,
)
from referrals.store.sql import build_engine


class TestSchema:
    """create_schema идемпотентна, сбой создания схемы фатален"""

    @pytest.mark.asyncio
    async def test_create_schema_twice(self, store):
        await store.create_schema()
        await store.create_schema()
        async with store.read() as tx:
            assert await tx.fetch_all() == []
        await store.dispose()

    @pytest.mark.asyncio
    async def test_memory_store_requires_schema(self):
        store = MemoryReferralStore()
        with pytest.raises(StoreError):
            async with store.read() as tx:
                await tx.fetch_all()

    @pytest.mark.asyncio
    async def test_schema_failure_is_setup_error(self, tmp_path):
        """Путь к БД указывает на каталог – SQLite не может открыть файл"""
        store = SqlReferralStore(f"sqlite+aiosqlite:///{tmp_path}")
        with pytest.raises(StoreSetupError):
            await store.create_schema()
        await store.dispose()

    @pytest.mark.asyncio
    async def test_file_store_persists(self, tmp_path):
        """Файловое хранилище переживает переоткрытие"""
        dsn = f"sqlite+aiosqlite:///{tmp_path / 'nested' / 'referrals.db'}"
        first = SqlReferralStore(dsn)
        await first.create_schema()
        async with first.write() as tx:
            await tx.insert(ReferralRecord("alice", "bob"))
        await first.dispose()

        second = SqlReferralStore(dsn)
        await second.create_schema()
        async with second.read() as tx:
            assert await tx.fetch_one("alice") == ReferralRecord("alice", "bob")
        await second.dispose()


class TestTransactions:
    """Атомарность записи и запрет записи в транзакции чтения"""

    @pytest.mark.asyncio
    async def test_failed_write_is_rolled_back(self, store):
        await store.create_schema()
        with pytest.raises(RuntimeError):
            async with store.write() as tx:
                await tx.upsert(ReferralRecord("alice"))
                raise RuntimeError("boom")
        async with store.read() as tx:
            assert await tx.fetch_one("alice") is None
        await store.dispose()

    @pytest.mark.asyncio
    async def test_read_transaction_rejects_writes(self, store):
        await store.create_schema()
        with pytest.raises(StoreError):
            async with store.read() as tx:
                await tx.upsert(ReferralRecord("alice"))
        await store.dispose()

    @pytest.mark.asyncio
    async def test_duplicate_insert(self, store):
        """insert не перезаписывает: дубликат первичного ключа – StoreError"""
        await store.create_schema()
        async with store.write() as tx:
            await tx.insert(ReferralRecord("alice"))
        with pytest.raises(StoreError):
            async with store.write() as tx:
                await tx.insert(ReferralRecord("alice", "bob"))
        async with store.read() as tx:
            assert await tx.fetch_one("alice") == ReferralRecord("alice")
        await store.dispose()

    @pytest.mark.asyncio
    async def test_raw_operations(self, store):
        await store.create_schema()
        async with store.write() as tx:
            await tx.upsert(ReferralRecord("alice"))
            await tx.upsert(ReferralRecord("bob", "alice"))
            assert await tx.update(ReferralRecord("alice", "root")) is True
            assert await tx.update(ReferralRecord("ghost", "root")) is False
        async with store.read() as tx:
            assert await tx.fetch_where_referrer("alice") == [ReferralRecord("bob", "alice")]
            assert await tx.fetch_one("alice") == ReferralRecord("alice", "root")
        async with store.write() as tx:
            assert await tx.delete("bob") is True
            assert await tx.delete("bob") is False
        async with store.read() as tx:
            assert await tx.fetch_all() == [ReferralRecord("alice", "root")]
        await store.dispose()

    @pytest.mark.asyncio
    async def test_erase(self, store):
        await store.create_schema()
        async with store.write() as tx:
            await tx.upsert(ReferralRecord("alice"))
        await store.erase()
        async with store.read() as tx:
            assert await tx.fetch_all() == []
        await store.dispose()

    @pytest.mark.asyncio
    async def test_disposed_store(self, store):
        await store.create_schema()
        await store.dispose()
        await store.dispose()
        assert store.closed is True
        with pytest.raises(StoreError):
            async with store.write():
                pass


class TestEngine:
    @pytest.mark.parametrize("dsn", ["sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:"])
    def test_memory_dsn_uses_static_pool(self, dsn):
        engine = build_engine(dsn)
        assert type(engine.pool).__name__ == "StaticPool"

    def test_file_dsn_uses_null_pool(self, tmp_path):
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'db' / 'referrals.db'}")
        assert type(engine.pool).__name__ == "NullPool"
        assert (tmp_path / "db").is_dir()
