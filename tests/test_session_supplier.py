"""Tests for the owner of the shared streaming session."""

import asyncio
from typing import AsyncGenerator

import pytest

from ryobi_gdo.auth import LoginAuth
from ryobi_gdo.listener_registry import ListenerRegistry
from ryobi_gdo.session_supplier import SessionSupplier

from .conftest import WEBSOCKET_PATH, FakeRyobiService, UpdateCallback


@pytest.fixture(name="registry")
def registry_fixture() -> ListenerRegistry:
    return ListenerRegistry()


@pytest.fixture(name="supplier")
async def supplier_fixture(
    auth: LoginAuth, registry: ListenerRegistry
) -> AsyncGenerator[SessionSupplier, None]:
    supplier = SessionSupplier(auth, registry, url=WEBSOCKET_PATH)
    yield supplier
    await supplier.async_close()


def subscribed_topics(service: FakeRyobiService) -> list[str]:
    return [
        frame["params"]["topic"]
        for frame in service.frames
        if frame["method"] == "wskSubscribe"
    ]


async def test_session_created_lazily(
    service: FakeRyobiService, supplier: SessionSupplier
) -> None:
    assert supplier.session is None
    assert not service.connections

    session = await supplier.async_get()
    await session.async_wait_authenticated()
    assert session.authenticated
    assert supplier.session is session
    assert await supplier.async_get() is session
    assert len(service.connections) == 1


async def test_concurrent_callers_share_connection(
    service: FakeRyobiService, supplier: SessionSupplier
) -> None:
    sessions = await asyncio.gather(*(supplier.async_get() for _ in range(3)))
    assert sessions[0] is sessions[1] is sessions[2]
    assert len(service.connections) == 1


async def test_listeners_subscribed_on_connect(
    service: FakeRyobiService, supplier: SessionSupplier
) -> None:
    callback = UpdateCallback()
    await supplier.async_add_listener("D1", callback.async_handle_update)
    await supplier.async_add_listener("D2", callback.async_handle_update)
    assert not service.connections

    await supplier.async_get()
    await service.async_wait_frames(3)
    assert service.methods() == ["srvWebSocketAuth", "wskSubscribe", "wskSubscribe"]
    assert subscribed_topics(service) == [
        "D1.wskAttributeUpdateNtfy",
        "D2.wskAttributeUpdateNtfy",
    ]


async def test_listener_subscribed_on_open_session(
    service: FakeRyobiService, supplier: SessionSupplier
) -> None:
    await supplier.async_get()
    callback = UpdateCallback()
    await supplier.async_add_listener("D1", callback.async_handle_update)
    await service.async_wait_frames(2)
    assert subscribed_topics(service) == ["D1.wskAttributeUpdateNtfy"]


async def test_resubscribe_after_reconnect(
    service: FakeRyobiService, supplier: SessionSupplier
) -> None:
    callback = UpdateCallback()
    await supplier.async_add_listener("D1", callback.async_handle_update)
    await supplier.async_add_listener("D2", callback.async_handle_update)
    session = await supplier.async_get()
    await service.async_wait_frames(3)

    # Connection dropped by the service
    await service.connections[-1].close()
    await session.async_wait_closed()
    assert supplier.session is None

    new_session = await supplier.async_get()
    assert new_session is not session
    assert len(service.connections) == 2
    await service.async_wait_frames(6)
    assert service.methods()[3:] == [
        "srvWebSocketAuth",
        "wskSubscribe",
        "wskSubscribe",
    ]
    assert subscribed_topics(service)[2:] == [
        "D1.wskAttributeUpdateNtfy",
        "D2.wskAttributeUpdateNtfy",
    ]


async def test_updates_delivered_to_listeners(
    service: FakeRyobiService, supplier: SessionSupplier
) -> None:
    callback = UpdateCallback()
    await supplier.async_add_listener("D1", callback.async_handle_update)
    await supplier.async_get()

    await service.async_send_notification(
        "D2", {"garageLight_7.lightState": {"value": True, "lastSet": 1}}
    )
    await service.async_send_notification(
        "D1", {"garageLight_7.lightState": {"value": False, "lastSet": 2}}
    )
    updates = await callback.async_wait_updates(1)
    assert [(u.device_id, u.value) for u in updates] == [("D1", False)]


async def test_reset(service: FakeRyobiService, supplier: SessionSupplier) -> None:
    session = await supplier.async_get()
    await supplier.async_reset()
    assert session.closed
    assert supplier.session is None

    assert await supplier.async_get() is not session
    assert len(service.connections) == 2


async def test_failed_connect_is_not_kept(
    service: FakeRyobiService, supplier: SessionSupplier
) -> None:
    callback = UpdateCallback()
    await supplier.async_add_listener("D1", callback.async_handle_update)
    service.authorize = False
    with pytest.raises(Exception):
        await supplier.async_get()
    assert supplier.session is None

    service.authorize = True
    session = await supplier.async_get()
    assert session.authenticated
    assert len(service.connections) == 2
