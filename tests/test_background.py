"""Tests for background task ownership."""

import asyncio
import logging

from product_resolver.services.background import BackgroundTasks


def test_finished_tasks_are_released() -> None:
    background = BackgroundTasks()

    async def scenario() -> int:
        async def work() -> int:
            return 1

        task = background.spawn(work(), name="work")
        assert background.pending == 1
        await task
        await asyncio.sleep(0)
        return background.pending

    assert asyncio.run(scenario()) == 0


def test_failures_are_logged(caplog) -> None:
    background = BackgroundTasks()
    logger = logging.getLogger("product_resolver.services.background")
    logger.addHandler(caplog.handler)

    async def scenario() -> None:
        async def boom() -> None:
            raise ValueError("boom")

        background.spawn(boom(), name="boom-task")
        await background.drain(timeout=1.0)

    try:
        asyncio.run(scenario())
    finally:
        logger.removeHandler(caplog.handler)

    assert "boom-task" in caplog.text


def test_drain_cancels_leftovers() -> None:
    background = BackgroundTasks()

    async def scenario() -> bool:
        task = background.spawn(asyncio.sleep(10), name="sleeper")
        await background.drain(timeout=0.01)
        return task.cancelled()

    assert asyncio.run(scenario())
    assert background.pending == 0
