"""Claude Agent SDK integration: hookwarden policies as in-process SDK hooks."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, AsyncIterator

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ClaudeSDKClient,
    HookMatcher,
    TextBlock,
)

from hookwarden.config import ExecutionResult, HookEvent
from hookwarden.runtime.bridge import HooksBridge
from hookwarden.runtime.context import context_from_host_payload

logger = logging.getLogger(__name__)

DEFAULT_SDK_EVENTS = (HookEvent.PRE_TOOL_USE.value, HookEvent.POST_TOOL_USE.value)


def _reasons(result: ExecutionResult) -> list[str]:
    lines = [entry.message for entry in result.messages if entry.type != "info" and entry.message]
    lines.extend(entry.message for entry in result.warnings if entry.message)
    return lines


def sdk_hook_response(event: str, result: ExecutionResult) -> dict[str, Any]:
    """Translate an aggregated result into the SDK's hook callback output."""
    reasons = _reasons(result)
    if event == HookEvent.PRE_TOOL_USE.value:
        if result.blocked:
            decision = "deny"
        elif result.confirm:
            decision = "ask"
        else:
            decision = "allow"
        return {
            "hookSpecificOutput": {
                "hookEventName": event,
                "permissionDecision": decision,
                "permissionDecisionReason": "; ".join(reasons) or f"hookwarden: {decision}",
            }
        }

    response: dict[str, Any] = {}
    if result.blocked:
        response["decision"] = "block"
        response["reason"] = "; ".join(reasons) or "Blocked by hookwarden"
    if reasons:
        response["systemMessage"] = "\n".join(reasons)
    return response


def _make_callback(bridge: HooksBridge, event: str):
    async def _callback(input_data: dict[str, Any], tool_use_id: str | None, context: Any) -> dict[str, Any]:
        op_context = context_from_host_payload(input_data)
        result = await bridge.execute_hooks(event, op_context)
        if result.blocked:
            logger.info("Blocked %s for tool %s (%s)", event, op_context.tool, tool_use_id or "-")
        return sdk_hook_response(event, result)

    return _callback


def build_sdk_hooks(
    bridge: HooksBridge,
    events: Iterable[str | HookEvent] = DEFAULT_SDK_EVENTS,
    *,
    matcher: str | None = None,
) -> dict[str, list[HookMatcher]]:
    """``hooks=`` mapping for :class:`ClaudeAgentOptions`, one matcher per event."""
    hooks: dict[str, list[HookMatcher]] = {}
    for event in events:
        name = event.value if isinstance(event, HookEvent) else event
        hooks[name] = [HookMatcher(matcher=matcher, hooks=[_make_callback(bridge, name)])]
    return hooks


class HookwardenClaudeClient:
    """Claude SDK client whose tool calls are screened by a :class:`HooksBridge`."""

    def __init__(
        self,
        *,
        bridge: HooksBridge | None = None,
        events: Iterable[str | HookEvent] = DEFAULT_SDK_EVENTS,
        model: str | None = None,
        allowed_tools: list[str] | None = None,
        setting_sources: list[str] | None = None,
    ) -> None:
        self.bridge = bridge or HooksBridge()
        self.events = list(events)
        self.model = model
        self.allowed_tools = allowed_tools or []
        self.setting_sources = setting_sources

        self._client: ClaudeSDKClient | None = None

    def _build_options(self) -> ClaudeAgentOptions:
        options_kwargs: dict[str, Any] = {
            "hooks": build_sdk_hooks(self.bridge, self.events),
        }
        if self.allowed_tools:
            options_kwargs["allowed_tools"] = list(self.allowed_tools)
        if self.model:
            options_kwargs["model"] = self.model
        if self.setting_sources:
            options_kwargs["setting_sources"] = self.setting_sources
        return ClaudeAgentOptions(**options_kwargs)

    async def __aenter__(self) -> "HookwardenClaudeClient":
        self._client = ClaudeSDKClient(options=self._build_options())
        await self._client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._client:
            await self._client.__aexit__(exc_type, exc_val, exc_tb)
            self._client = None

    async def query(self, prompt: str) -> AsyncIterator[Any]:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        await self._client.query(prompt)
        async for message in self._client.receive_response():
            yield message

    async def ask(self, prompt: str) -> list[str]:
        """Send ``prompt`` and collect the assistant's text blocks."""
        responses: list[str] = []
        async for message in self.query(prompt):
            if isinstance(message, AssistantMessage):
                for block in message.content:
                    if isinstance(block, TextBlock):
                        responses.append(block.text)
        return responses
