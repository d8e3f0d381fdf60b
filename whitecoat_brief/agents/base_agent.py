"""Shared plumbing for agents that call Claude through the Anthropic SDK."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import anthropic


@dataclass
class UsageData:
    """Token counts reported for one call."""

    input_tokens: int
    output_tokens: int
    model: str


@dataclass
class AgentReply:
    """Text of a Claude reply plus what it cost."""

    text: str
    usage: UsageData


class BaseAgent(ABC):
    """
    Base class for Anthropic-backed agents.

    Subclasses build a prompt, call _ask() and interpret the reply text in
    execute().
    """

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model_id: str = "claude-sonnet-4-20250514",
        max_tokens: int = 8000,
    ):
        self.client = client
        self.model_id = model_id
        self.max_tokens = max_tokens

    async def _ask(self, prompt: str, temperature: float = 1.0) -> AgentReply:
        """
        Send the prompt as a single user turn.

        Raises:
            anthropic.APIError: on any API failure (callers translate it)
        """
        response = await self.client.messages.create(
            model=self.model_id,
            max_tokens=self.max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        text = next((block.text for block in response.content if block.type == "text"), "")
        usage = UsageData(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=self.model_id,
        )
        return AgentReply(text=text, usage=usage)

    @abstractmethod
    async def execute(self, *args: Any, **kwargs: Any) -> Any:
        """Run the agent's one job."""
