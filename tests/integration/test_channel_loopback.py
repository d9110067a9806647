"""Integration tests for two channels wired through a loopback pair.

Covers the end-to-end call/answer behaviour:
- Round trips in both directions
- Error propagation (no handler, handler failure)
- Independent settlement of concurrent calls
- Reentrant calls from inside handlers
- Timeouts, orphaned replies and teardown
"""

import asyncio

import pytest

from bridgecall import (
    CallTimeoutError,
    Channel,
    ChannelClosedError,
    ChannelConfig,
    Envelope,
    HandlerError,
    LoopbackTransport,
    NoHandlerError,
    create,
)

# =============================================================================
# Tests: End-to-end scenario
# =============================================================================


class TestScenario:
    """The ping / missing / boom / echo walkthrough."""

    @pytest.mark.asyncio
    async def test_ping_pong(self, channel_a, channel_b):
        channel_b.answer("ping", lambda _: "pong")

        assert await channel_a.call("ping") == "pong"

    @pytest.mark.asyncio
    async def test_missing_handler(self, channel_a, channel_b):
        with pytest.raises(NoHandlerError) as exc_info:
            await channel_a.call("missing")

        assert exc_info.value.details == {"event": "missing"}

    @pytest.mark.asyncio
    async def test_handler_failure(self, channel_a, channel_b):
        def boom(_):
            raise RuntimeError("nope")

        channel_b.answer("boom", boom)

        with pytest.raises(HandlerError) as exc_info:
            await channel_a.call("boom")

        assert "nope" in exc_info.value.description

    @pytest.mark.asyncio
    async def test_symmetry(self, channel_a, channel_b):
        """Either side may call and either side may answer."""
        channel_a.answer("echo", lambda x: x)
        channel_b.answer("ping", lambda _: "pong")

        assert await channel_b.call("echo", "hi") == "hi"
        assert await channel_a.call("ping") == "pong"


# =============================================================================
# Tests: Call properties
# =============================================================================


class TestCallProperties:
    """Settlement guarantees across calls."""

    @pytest.mark.asyncio
    async def test_result_is_handler_output(self, channel_a, channel_b):
        channel_b.answer("sum", lambda numbers: sum(numbers))

        assert await channel_a.call("sum", [1, 2, 3]) == 6
        assert channel_a.pending_count == 0

    @pytest.mark.asyncio
    async def test_async_handler(self, channel_a, channel_b):
        async def lookup(key):
            await asyncio.sleep(0.01)
            return {"key": key, "value": key.upper()}

        channel_b.answer("lookup", lookup)

        assert await channel_a.call("lookup", "abc") == {"key": "abc", "value": "ABC"}

    @pytest.mark.asyncio
    async def test_concurrent_calls_not_swapped(self, channel_a, channel_b):
        channel_b.answer("left", lambda x: f"left:{x}")
        channel_b.answer("right", lambda x: f"right:{x}")

        results = await asyncio.gather(
            channel_a.call("left", 1),
            channel_a.call("right", 2),
            channel_a.call("left", 3),
        )

        assert results == ["left:1", "right:2", "left:3"]

    @pytest.mark.asyncio
    async def test_out_of_order_settlement(self, channel_a, channel_b):
        """A later, faster call may settle before an earlier, slower one."""
        finished = []

        async def slow(_):
            await asyncio.sleep(0.05)
            return "slow"

        channel_b.answer("slow", slow)
        channel_b.answer("fast", lambda _: "fast")

        slow_call = channel_a.call("slow")
        fast_call = channel_a.call("fast")
        slow_call.add_done_callback(lambda _: finished.append("slow"))
        fast_call.add_done_callback(lambda _: finished.append("fast"))

        assert await asyncio.gather(slow_call, fast_call) == ["slow", "fast"]
        assert finished == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_failure_does_not_contaminate_later_calls(self, channel_a, channel_b):
        def boom(_):
            raise ValueError("bad input")

        channel_b.answer("boom", boom)
        channel_b.answer("ok", lambda _: "fine")

        with pytest.raises(HandlerError):
            await channel_a.call("boom")

        assert await channel_a.call("ok") == "fine"

    @pytest.mark.asyncio
    async def test_replaced_handler_used_for_new_calls(self, channel_a, channel_b):
        channel_b.answer("version", lambda _: 1)
        assert await channel_a.call("version") == 1

        channel_b.answer("version", lambda _: 2)
        assert await channel_a.call("version") == 2

    @pytest.mark.asyncio
    async def test_unanswer(self, channel_a, channel_b):
        channel_b.answer("ping", lambda _: "pong")

        assert channel_b.unanswer("ping") is True
        assert channel_b.answers == []
        with pytest.raises(NoHandlerError):
            await channel_a.call("ping")

    @pytest.mark.asyncio
    async def test_empty_event_rejected(self, channel_a):
        with pytest.raises(ValueError):
            channel_a.call("")

    @pytest.mark.asyncio
    async def test_non_positive_timeout_rejected(self, channel_a):
        with pytest.raises(ValueError):
            channel_a.call("ping", timeout=0)


# =============================================================================
# Tests: Reentrancy
# =============================================================================


class TestReentrancy:
    """Handlers issuing their own calls."""

    @pytest.mark.asyncio
    async def test_nested_round_trip(self, channel_a, channel_b):
        channel_a.answer("double", lambda x: x * 2)

        async def outer(x):
            doubled = await channel_b.call("double", x)
            return doubled + 1

        channel_b.answer("outer", outer)

        assert await channel_a.call("outer", 5) == 11

    @pytest.mark.asyncio
    async def test_deep_ping_pong(self, channel_a, channel_b):
        """Calls may bounce back and forth without a depth limit."""

        def bouncer(own: Channel):
            async def bounce(n):
                if n == 0:
                    return "bottom"
                return await own.call("bounce", n - 1)

            return bounce

        channel_a.answer("bounce", bouncer(channel_a))
        channel_b.answer("bounce", bouncer(channel_b))

        assert await channel_a.call("bounce", 20) == "bottom"


# =============================================================================
# Tests: Timeouts and orphans
# =============================================================================


class TestTimeouts:
    """Caller-side deadlines and late replies."""

    @pytest.mark.asyncio
    async def test_timeout_rejects(self, channel_a, channel_b):
        gate = asyncio.Event()

        async def stuck(_):
            await gate.wait()
            return "too late"

        channel_b.answer("stuck", stuck)

        with pytest.raises(CallTimeoutError):
            await channel_a.call("stuck", timeout=0.02)

        # Releasing the handler produces an orphaned reply that is discarded
        gate.set()
        await asyncio.sleep(0.01)
        assert channel_a.pending_count == 0

    @pytest.mark.asyncio
    async def test_default_timeout_from_config(self, transports):
        left, right = transports
        caller = create(left, ChannelConfig(default_timeout=0.02, name="caller"))
        right.disconnect()

        with pytest.raises(TimeoutError):
            await caller.call("anything")

        caller.close()

    @pytest.mark.asyncio
    async def test_per_call_timeout_overrides_default(self, transports):
        left, right = transports
        caller = create(left, ChannelConfig(default_timeout=30.0))
        answerer = create(right)

        async def slow(_):
            await asyncio.sleep(1)

        answerer.answer("slow", slow)

        with pytest.raises(CallTimeoutError) as exc_info:
            await caller.call("slow", timeout=0.02)

        assert exc_info.value.timeout == 0.02
        await caller.aclose()
        await answerer.aclose()

    @pytest.mark.asyncio
    async def test_duplicate_response_is_noop(self, transports):
        """Re-delivering a response for a settled id changes nothing."""
        left, right = transports
        caller = create(left)
        answerer = create(right)
        answerer.answer("ping", lambda _: "pong")

        assert await caller.call("ping") == "pong"
        request = left.sent[0]

        left.inject(Envelope.response(request, "again"))
        left.inject(Envelope.error(request, HandlerError("again")))

        assert caller.pending_count == 0
        assert await caller.call("ping") == "pong"
        caller.close()
        answerer.close()


# =============================================================================
# Tests: Close
# =============================================================================


class TestClose:
    """Channel teardown."""

    @pytest.mark.asyncio
    async def test_close_rejects_pending_calls(self, channel_a, channel_b):
        async def never(_):
            await asyncio.Event().wait()

        channel_b.answer("never", never)
        first = channel_a.call("never")
        second = channel_a.call("never")
        await asyncio.sleep(0.01)

        channel_a.close()

        for future in (first, second):
            with pytest.raises(ChannelClosedError):
                await future
        assert channel_a.pending_count == 0

    @pytest.mark.asyncio
    async def test_call_after_close_rejects_immediately(self, channel_a, channel_b):
        channel_b.answer("ping", lambda _: "pong")
        channel_a.close()

        future = channel_a.call("ping")

        assert future.done()
        with pytest.raises(ChannelClosedError):
            await future

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, channel_a):
        channel_a.close()
        channel_a.close()
        await channel_a.aclose()

        assert channel_a.closed is True

    @pytest.mark.asyncio
    async def test_closed_answerer_ignores_requests(self, channel_a, channel_b):
        channel_b.answer("ping", lambda _: "pong")
        channel_b.close()

        assert channel_b.answers == []
        assert channel_b.transport.has_receiver is False
        with pytest.raises(CallTimeoutError):
            await channel_a.call("ping", timeout=0.02)

    @pytest.mark.asyncio
    async def test_close_cancels_running_handlers(self, channel_a, channel_b):
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def long_running(_):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        channel_b.answer("long", long_running)
        pending = channel_a.call("long", timeout=0.05)
        await started.wait()

        await channel_b.aclose()

        assert cancelled.is_set()
        with pytest.raises(CallTimeoutError):
            await pending

    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        left, right = LoopbackTransport.pair()

        async with create(left) as a, create(right) as b:
            b.answer("ping", lambda _: "pong")
            assert await a.call("ping") == "pong"

        assert a.closed and b.closed

    @pytest.mark.asyncio
    async def test_channels_are_independent(self):
        """Separately created channels share no state."""
        left1, right1 = LoopbackTransport.pair()
        left2, right2 = LoopbackTransport.pair()
        a1, b1 = create(left1), create(right1)
        a2, b2 = create(left2), create(right2)

        b1.answer("who", lambda _: "one")
        b2.answer("who", lambda _: "two")

        assert await asyncio.gather(a1.call("who"), a2.call("who")) == ["one", "two"]
        assert b2.answers == ["who"]

        b1.close()
        assert await a2.call("who") == "two"

        for channel in (a1, a2, b2):
            channel.close()
