import pytest

from bouncer.database.db_connection import ConnectionManager
from bouncer.database.db_schema import VERIFICATION_TABLE, WHITELIST_TABLE
from bouncer.database.kv_store import KeyValueStore
from bouncer.datatypes.discord_datatypes import UserID


@pytest.mark.asyncio
async def test_put_get_delete_roundtrip(connection):
    store = KeyValueStore(connection, VERIFICATION_TABLE)

    assert await store.get("missing") is None

    await store.put("ban:abc", {"user_id": "1", "code": "123456"})
    assert await store.get("ban:abc") == {"user_id": "1", "code": "123456"}
    assert await store.contains("ban:abc") is True

    await store.put("ban:abc", {"user_id": "1", "code": "654321"})
    assert (await store.get("ban:abc"))["code"] == "654321"

    assert await store.delete("ban:abc") is True
    assert await store.delete("ban:abc") is False
    assert await store.get("ban:abc") is None


@pytest.mark.asyncio
async def test_tables_are_independent(connection):
    verification = KeyValueStore(connection, VERIFICATION_TABLE)
    whitelist = KeyValueStore(connection, WHITELIST_TABLE)

    await verification.put("42", "token")
    assert await whitelist.get("42") is None


def test_unknown_table_rejected():
    with pytest.raises(ValueError):
        KeyValueStore(ConnectionManager(), "users; DROP TABLE whitelist")


@pytest.mark.asyncio
async def test_values_survive_reopen(tmp_path):
    path = tmp_path / "nested" / "persist.db"
    manager = ConnectionManager()
    await manager.open(path)
    await KeyValueStore(manager, WHITELIST_TABLE).put("7", {"added_at": 1})
    await manager.close()

    reopened = ConnectionManager()
    await reopened.open(path)
    try:
        assert await KeyValueStore(reopened, WHITELIST_TABLE).get("7") == {"added_at": 1}
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_connection_must_be_open():
    manager = ConnectionManager()
    with pytest.raises(RuntimeError):
        _ = manager.connection


@pytest.mark.asyncio
async def test_open_twice_is_rejected(connection, tmp_path):
    with pytest.raises(RuntimeError):
        await connection.open(tmp_path / "other.db")


@pytest.mark.asyncio
async def test_shared_transaction_spans_tables(connection):
    verification = KeyValueStore(connection, VERIFICATION_TABLE)
    whitelist = KeyValueStore(connection, WHITELIST_TABLE)
    await verification.put("user:9", "token")

    async with verification.transaction() as conn:
        assert await verification.delete("user:9", conn=conn) is True
        await whitelist.put("9", {"added_at": 1}, conn=conn)

    assert await verification.get("user:9") is None
    assert await whitelist.get("9") == {"added_at": 1}


@pytest.mark.asyncio
async def test_failed_shared_transaction_rolls_back_every_table(connection):
    verification = KeyValueStore(connection, VERIFICATION_TABLE)
    whitelist = KeyValueStore(connection, WHITELIST_TABLE)
    await verification.put("user:9", "token")

    with pytest.raises(RuntimeError):
        async with verification.transaction() as conn:
            await verification.delete("user:9", conn=conn)
            await whitelist.put("9", {"added_at": 1}, conn=conn)
            raise RuntimeError("abort")

    assert await verification.get("user:9") == "token"
    assert await whitelist.get("9") is None


@pytest.mark.asyncio
async def test_whitelist_membership(whitelist):
    user = UserID(55)
    assert await whitelist.contains(user) is False
    await whitelist.add(user)
    assert await whitelist.contains(user) is True
