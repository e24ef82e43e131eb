"""Tests for completion dispatchers."""

from __future__ import annotations

import asyncio
import logging
import threading
from unittest.mock import MagicMock

import pytest

from stepwise.health.base import Period
from stepwise.health.config_loader import HealthConfig
from stepwise.health.dispatch import InlineDispatcher, LoopDispatcher
from stepwise.health.facade import HealthFacade
from stepwise.health.stores.memory import InMemoryHealthStore, InMemoryMotionSensor
from stepwise.health.tests.conftest import NOW


class TestInlineDispatcher:
    def test_calls_immediately_with_args(self) -> None:
        callback = MagicMock()
        InlineDispatcher().dispatch(callback, 1, "two")
        callback.assert_called_once_with(1, "two")


class TestLoopDispatcher:
    @pytest.mark.asyncio
    async def test_delivers_on_loop_thread_from_worker(self) -> None:
        loop = asyncio.get_running_loop()
        dispatcher = LoopDispatcher(loop)
        delivered = asyncio.Event()
        seen: dict = {}

        def callback(value: int) -> None:
            seen["thread"] = threading.get_ident()
            seen["value"] = value
            delivered.set()

        await asyncio.to_thread(dispatcher.dispatch, callback, 7)
        await asyncio.wait_for(delivered.wait(), timeout=1.0)

        assert seen == {"thread": threading.get_ident(), "value": 7}

    @pytest.mark.asyncio
    async def test_not_called_synchronously(self) -> None:
        dispatcher = LoopDispatcher(asyncio.get_running_loop())
        callback = MagicMock()

        dispatcher.dispatch(callback, "x")
        callback.assert_not_called()

        await asyncio.sleep(0)
        callback.assert_called_once_with("x")

    def test_closed_loop_drops_completion(self, caplog: pytest.LogCaptureFixture) -> None:
        loop = asyncio.new_event_loop()
        loop.close()
        callback = MagicMock()

        with caplog.at_level(logging.WARNING, logger="stepwise.health.dispatch"):
            LoopDispatcher(loop).dispatch(callback, 1)

        callback.assert_not_called()
        assert "designated loop is closed" in caplog.text

    @pytest.mark.asyncio
    async def test_facade_results_arrive_on_loop(self, health_config: HealthConfig) -> None:
        sensor = InMemoryMotionSensor()
        sensor.record(NOW, 321, 250.0)
        facade = HealthFacade(
            InMemoryHealthStore(),
            sensor,
            dispatcher=LoopDispatcher(asyncio.get_running_loop()),
            config=health_config,
            clock=lambda: NOW,
        )
        received: asyncio.Future = asyncio.get_running_loop().create_future()

        total = await facade.total_steps(Period.TODAY, received.set_result)

        assert await asyncio.wait_for(received, timeout=1.0) == total
        assert total == pytest.approx(321.0)
