"""Tests for trigger id propagation."""

import asyncio
import contextvars
from concurrent.futures import ThreadPoolExecutor

import pytest

from src.utils.trace_context import (
    clear_trigger_id,
    generate_trigger_id,
    get_trigger_counter,
    get_trigger_id,
    new_trigger,
    reset_trigger_counter,
    set_trigger_id,
)


class TestTraceContext:
    def test_default_placeholder(self) -> None:
        assert get_trigger_id() == "------"

    def test_generated_ids_are_short_hex(self) -> None:
        trigger_id = generate_trigger_id()
        assert len(trigger_id) == 6
        int(trigger_id, 16)

    def test_new_trigger_scopes_id(self) -> None:
        reset_trigger_counter()
        with new_trigger() as outer:
            assert get_trigger_id() == outer
            with new_trigger() as inner:
                assert get_trigger_id() == inner
            assert get_trigger_id() == outer
        assert get_trigger_id() == "------"
        assert get_trigger_counter() == 2

    def test_set_and_clear(self) -> None:
        set_trigger_id("abc123")
        assert get_trigger_id() == "abc123"
        clear_trigger_id()
        assert get_trigger_id() == "------"

    def test_copied_context_reaches_thread(self) -> None:
        with new_trigger() as trigger_id, ThreadPoolExecutor(max_workers=1) as pool:
            ctx = contextvars.copy_context()
            seen = pool.submit(ctx.run, get_trigger_id).result()
        assert seen == trigger_id

    @pytest.mark.asyncio
    async def test_tasks_do_not_share_ids(self) -> None:
        async def evaluate() -> tuple:
            with new_trigger() as trigger_id:
                await asyncio.sleep(0)
                return trigger_id, get_trigger_id()

        results = await asyncio.gather(evaluate(), evaluate())
        assert all(opened == seen for opened, seen in results)
