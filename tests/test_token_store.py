import pytest

from conftest import FakeKeyValue
from logicmaster.token_store import TokenStore

pytestmark = pytest.mark.anyio


async def test_load_reads_persisted_token_once() -> None:
    kv = FakeKeyValue({"auth_token": "abc"})
    store = TokenStore(kv)

    assert await store.load() == "abc"
    assert await store.load() == "abc"
    assert store.token == "abc"
    assert kv.reads == 1


async def test_load_without_token_returns_none() -> None:
    store = TokenStore(FakeKeyValue())
    assert await store.load() is None
    assert store.token is None


async def test_load_failure_degrades_to_no_token() -> None:
    kv = FakeKeyValue({"auth_token": "abc"})
    kv.fail = True
    store = TokenStore(kv)

    assert await store.load() is None
    assert store.token is None


async def test_save_and_clear_update_cache_and_storage(kv: FakeKeyValue) -> None:
    store = TokenStore(kv)

    await store.save("t-1")
    assert store.token == "t-1"
    assert kv.data == {"auth_token": "t-1"}

    await store.clear()
    assert store.token is None
    assert kv.data == {}


async def test_storage_failure_keeps_intended_value_in_memory(kv: FakeKeyValue) -> None:
    store = TokenStore(kv)
    kv.fail = True

    await store.save("t-2")
    assert store.token == "t-2"

    await store.clear()
    assert store.token is None


async def test_custom_key(kv: FakeKeyValue) -> None:
    store = TokenStore(kv, key="other_token")
    await store.save("x")
    assert kv.data == {"other_token": "x"}
