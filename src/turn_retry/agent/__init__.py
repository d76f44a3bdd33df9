"""Agent engine interface and a stream-driven reference implementation."""

from turn_retry.agent.base import AgentListener, BaseAgent
from turn_retry.agent.stream import AssistantEventStream
from turn_retry.agent.streaming_agent import StreamingAgent

__all__ = ["AgentListener", "AssistantEventStream", "BaseAgent", "StreamingAgent"]
