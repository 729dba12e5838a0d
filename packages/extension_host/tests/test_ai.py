from __future__ import annotations

import asyncio

import pytest

from extension_host.api.ai import AI_UNAVAILABLE_MESSAGE, AINamespace, AIRequestBroker, resolve_creativity
from extension_host.capabilities.abort import AbortController, AbortSignal
from extension_host.errors import AbortError


@pytest.fixture
def broker(bridge) -> AIRequestBroker:
    return AIRequestBroker(bridge, clock=lambda: 1700000000.0)


@pytest.mark.asyncio
async def test_chunks_then_done_resolve_full_text(bridge, broker: AIRequestBroker) -> None:
    request = broker.ask("Say hi", model="OpenAI_GPT4o", creativity="low")
    seen: list[str] = []
    request.on("data", seen.append)
    await asyncio.sleep(0)

    request_id, prompt, options = bridge.ai_requests[0]
    assert request_id == "ai-req-1-1700000000000"
    assert prompt == "Say hi"
    assert options == {"model": "openai-gpt-4o", "creativity": 0.3}

    for chunk in ["Hel", "lo", "!"]:
        bridge.emit_ai(request_id, "chunk", chunk)
    bridge.emit_ai(request_id, "done")

    assert await request == "Hello!"
    assert seen == ["Hel", "lo", "!"]
    assert broker.pending_ids == []


@pytest.mark.asyncio
async def test_events_after_terminal_state_are_ignored(bridge, broker: AIRequestBroker) -> None:
    request = broker.ask("x")
    bridge.emit_ai(request.request_id, "done")
    bridge.emit_ai(request.request_id, "chunk", "late")
    bridge.emit_ai(request.request_id, "error", "late failure")

    assert await request == ""
    assert request.text == ""


@pytest.mark.asyncio
async def test_error_event_rejects(bridge, broker: AIRequestBroker) -> None:
    request = broker.ask("x")
    bridge.emit_ai(request.request_id, "error", "rate limited")

    with pytest.raises(RuntimeError, match="rate limited"):
        await request


@pytest.mark.asyncio
async def test_abort_rejects_and_cancels_once(bridge, broker: AIRequestBroker) -> None:
    controller = AbortController()
    request = broker.ask("x", signal=controller.signal)

    controller.abort()
    controller.abort()

    with pytest.raises(AbortError, match="Request aborted"):
        await request
    assert bridge.ai_cancelled == [request.request_id]
    bridge.emit_ai(request.request_id, "chunk", "ignored")
    assert request.text == ""


@pytest.mark.asyncio
async def test_pre_aborted_signal_never_reaches_bridge(bridge, broker: AIRequestBroker) -> None:
    request = broker.ask("x", signal=AbortSignal.abort())

    with pytest.raises(AbortError):
        await request
    await asyncio.sleep(0)
    assert bridge.ai_requests == []


@pytest.mark.asyncio
async def test_unavailable_rejects(bridge, broker: AIRequestBroker) -> None:
    bridge.ai_enabled = False

    with pytest.raises(RuntimeError, match=AI_UNAVAILABLE_MESSAGE):
        await broker.ask("x")
    assert bridge.ai_requests == []


@pytest.mark.asyncio
async def test_concurrent_requests_are_routed_by_id(bridge, broker: AIRequestBroker) -> None:
    first = broker.ask("one")
    second = broker.ask("two")

    bridge.emit_ai(second.request_id, "chunk", "B")
    bridge.emit_ai(first.request_id, "chunk", "A")
    bridge.emit_ai(second.request_id, "done")
    bridge.emit_ai(first.request_id, "done")

    assert await first == "A"
    assert await second == "B"


@pytest.mark.asyncio
async def test_close_aborts_outstanding(bridge, broker: AIRequestBroker) -> None:
    request = broker.ask("x")

    broker.close()

    with pytest.raises(AbortError):
        await request


@pytest.mark.asyncio
async def test_namespace_merges_options(bridge, broker: AIRequestBroker) -> None:
    ai = AINamespace(broker)
    request = ai.ask("x", {"creativity": "high"}, model=AINamespace.Model.Anthropic_Claude_Haiku)
    await asyncio.sleep(0)

    assert bridge.ai_requests[0][2] == {"model": "anthropic-claude-haiku", "creativity": 1.2}
    bridge.emit_ai(request.request_id, "done")
    await request


def test_resolve_creativity() -> None:
    assert resolve_creativity(None) == 0.7
    assert resolve_creativity(5) == 2.0
    assert resolve_creativity("NONE") == 0.0
    assert resolve_creativity("unknown") == 0.7
