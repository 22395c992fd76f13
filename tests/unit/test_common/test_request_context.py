"""
Request Context Unit Tests
"""

import asyncio

import pytest

from storyboard_gateway.common.request_context import (
    RequestContext,
    activate,
    get_context,
    get_request_id,
    get_user_api_key,
    request_scope,
    run_with_context,
    update_meta,
)


class TestRequestScope:
    """request_scope / run_with_context"""

    def test_context_visible_inside_scope_only(self):
        """The context is readable inside the block and gone afterwards."""
        context = RequestContext(user_api_key="caller-key", endpoint="/api/ai/chat")

        with request_scope(context):
            assert get_context() is context
            assert get_request_id() == context.request_id
            assert get_user_api_key() == "caller-key"

        assert get_context() is None
        assert get_request_id() is None

    def test_scope_restored_on_exception(self):
        """The previous context is restored when the block raises."""
        outer = RequestContext()
        inner = RequestContext()

        with request_scope(outer):
            with pytest.raises(RuntimeError):
                with request_scope(inner):
                    raise RuntimeError("boom")
            assert get_context() is outer

    def test_request_id_is_generated_once(self):
        """Each context gets its own stable id."""
        first = RequestContext()
        second = RequestContext()

        assert first.request_id != second.request_id
        assert first.request_id == first.request_id

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_isolated(self):
        """Concurrent tasks never observe each other's context."""

        async def handle(key: str) -> tuple[str, str]:
            context = RequestContext(user_api_key=key)

            async def work() -> tuple[str, str]:
                await asyncio.sleep(0.01)
                return get_user_api_key(), get_request_id()

            result = await run_with_context(context, work)
            assert result[1] == context.request_id
            return result

        results = await asyncio.gather(*(handle(f"key-{i}") for i in range(10)))

        assert [key for key, _ in results] == [f"key-{i}" for i in range(10)]
        assert len({request_id for _, request_id in results}) == 10

    @pytest.mark.asyncio
    async def test_spawned_tasks_inherit_context(self):
        """Tasks created inside a scope see the scope's context."""
        context = RequestContext()

        async def child() -> str:
            return get_request_id()

        with request_scope(context):
            task = asyncio.create_task(child())
        assert await task == context.request_id

    @pytest.mark.asyncio
    async def test_activate_is_local_to_task(self):
        """activate() does not leak out of the task that called it."""
        context = RequestContext()

        async def stream_task() -> str:
            activate(context)
            return get_request_id()

        assert await asyncio.create_task(stream_task()) == context.request_id
        assert get_context() is None


class TestUpdateMeta:
    """update_meta"""

    def test_merges_fields(self):
        """Known fields are written; None never erases a value."""
        context = RequestContext()
        with request_scope(context):
            update_meta(model="gemini-2.5-flash", project_id="p1")
            update_meta(model=None, prompt="a city at dusk")

        assert context.meta.model == "gemini-2.5-flash"
        assert context.meta.project_id == "p1"
        assert context.meta.prompt == "a city at dusk"

    def test_unknown_field_raises(self):
        """Unknown field names are rejected."""
        with request_scope(RequestContext()):
            with pytest.raises(TypeError, match="Unknown request meta field"):
                update_meta(colour="red")

    def test_noop_outside_scope(self):
        """Outside a request scope nothing happens."""
        update_meta(model="gemini-2.5-flash")
        assert get_context() is None

    def test_elapsed_is_non_negative(self):
        """elapsed_ms starts at zero or more."""
        assert RequestContext().elapsed_ms >= 0
