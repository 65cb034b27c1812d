import asyncio

import pytest

from client.gate import ConnectionGate
from conftest import settle


@pytest.mark.asyncio
async def test_open_gate_runs_action_immediately():
    gate = ConnectionGate()
    gate.resume()

    assert await gate.run(lambda: 7) == 7


@pytest.mark.asyncio
async def test_closed_gate_holds_callers_until_resume():
    gate = ConnectionGate()
    ran = []

    task = asyncio.create_task(gate.run(lambda: ran.append("a")))
    await settle()

    assert ran == []
    assert gate.waiting == 1

    gate.resume()
    await task
    assert ran == ["a"]
    assert gate.waiting == 0


@pytest.mark.asyncio
async def test_resume_admits_in_arrival_order():
    gate = ConnectionGate()
    order = []

    tasks = [asyncio.create_task(gate.run(lambda i=i: order.append(i))) for i in range(5)]
    await settle()
    gate.resume()
    # Arrives while the queue is draining; must go last
    late = asyncio.create_task(gate.run(lambda: order.append("late")))
    await asyncio.gather(*tasks, late)

    assert order == [0, 1, 2, 3, 4, "late"]


@pytest.mark.asyncio
async def test_async_actions_are_awaited_and_errors_propagate():
    gate = ConnectionGate()
    gate.resume()

    async def ok():
        await asyncio.sleep(0)
        return "done"

    async def boom():
        raise ValueError("nope")

    assert await gate.run(ok) == "done"
    with pytest.raises(ValueError):
        await gate.run(boom)
    # The gate keeps admitting after an action fails
    assert await gate.run(lambda: 1) == 1


@pytest.mark.asyncio
async def test_pause_holds_new_callers_indefinitely():
    gate = ConnectionGate()
    gate.resume()
    gate.pause()
    ran = []

    task = asyncio.create_task(gate.run(lambda: ran.append(1)))
    await settle()
    assert not task.done()
    assert ran == []

    gate.resume()
    await task
    assert ran == [1]


@pytest.mark.asyncio
async def test_cancelled_waiter_leaves_queue():
    gate = ConnectionGate()
    ran = []

    first = asyncio.create_task(gate.run(lambda: ran.append("first")))
    second = asyncio.create_task(gate.run(lambda: ran.append("second")))
    await settle()
    first.cancel()
    await settle()

    assert gate.waiting == 1
    gate.resume()
    await second
    assert ran == ["second"]
    assert first.cancelled()


@pytest.mark.asyncio
async def test_fail_waiting_raises_in_queued_callers():
    gate = ConnectionGate()

    task = asyncio.create_task(gate.run(lambda: "never"))
    await settle()
    gate.fail_waiting(lambda: RuntimeError("closed"))

    with pytest.raises(RuntimeError, match="closed"):
        await task
    assert gate.waiting == 0


@pytest.mark.asyncio
async def test_fail_waiting_gives_each_caller_its_own_error():
    gate = ConnectionGate()

    tasks = [asyncio.create_task(gate.run(lambda: None)) for _ in range(2)]
    await settle()
    gate.fail_waiting(lambda: RuntimeError("closed"))

    errors = await asyncio.gather(*tasks, return_exceptions=True)
    assert all(isinstance(e, RuntimeError) for e in errors)
    assert errors[0] is not errors[1]
