import asyncio

import pytest

from client.correlation import CorrelationTable
from client.errors import DuplicateRequestError, HubRequestError


@pytest.mark.asyncio
async def test_resolve_completes_and_removes_slot():
    table = CorrelationTable()
    future = table.wait(0)
    assert 0 in table

    table.resolve(0, {"quota": 5})

    assert await future == {"quota": 5}
    assert len(table) == 0


@pytest.mark.asyncio
async def test_reject_carries_reason():
    table = CorrelationTable()
    future = table.wait(3)

    table.reject(3, "not-found")

    with pytest.raises(HubRequestError) as info:
        await future
    assert info.value.reason == "not-found"
    assert info.value.request_id == 3
    assert 3 not in table


@pytest.mark.asyncio
async def test_duplicate_wait_is_an_error():
    table = CorrelationTable()
    table.wait(1)

    with pytest.raises(DuplicateRequestError):
        table.wait(1)


@pytest.mark.asyncio
async def test_unknown_ids_are_ignored():
    table = CorrelationTable()
    future = table.wait(0)

    table.resolve(9, "x")
    table.reject(9, "y")

    assert not future.done()
    assert 0 in table


@pytest.mark.asyncio
async def test_second_completion_is_a_no_op():
    table = CorrelationTable()
    future = table.wait(0)

    table.resolve(0, "first")
    table.reject(0, "late")
    table.resolve(0, "later")

    assert await future == "first"


@pytest.mark.asyncio
async def test_only_matching_slot_completes():
    table = CorrelationTable()
    a, b, c = table.wait(0), table.wait(1), table.wait(2)

    table.resolve(1, "b")

    assert b.result() == "b"
    assert not a.done() and not c.done()
    assert len(table) == 2


@pytest.mark.asyncio
async def test_cancelled_waiter_frees_slot():
    table = CorrelationTable()
    future = table.wait(0)

    future.cancel()
    await asyncio.sleep(0)

    assert 0 not in table
    # A late response for the abandoned request is harmless
    table.resolve(0, "late")


@pytest.mark.asyncio
async def test_reject_all_fails_every_pending_slot():
    table = CorrelationTable()
    futures = [table.wait(i) for i in range(3)]

    assert table.reject_all(lambda: ConnectionError("gone")) == 3
    assert len(table) == 0
    for future in futures:
        with pytest.raises(ConnectionError):
            await future


@pytest.mark.asyncio
async def test_reject_all_uses_a_fresh_error_per_slot():
    table = CorrelationTable()
    futures = [table.wait(i) for i in range(2)]

    table.reject_all(lambda: ConnectionError("gone"))

    errors = await asyncio.gather(*futures, return_exceptions=True)
    assert errors[0] is not errors[1]
