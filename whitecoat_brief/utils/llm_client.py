"""LiteLLM wrapper shared by the insight extractor and the concept agent.

One call shape for text and vision requests, whichever provider the model
id points at (Gemini, Anthropic, OpenAI, ...).
"""

import logging

import litellm

# Suppress verbose LiteLLM logging
litellm.set_verbose = False
logging.getLogger("LiteLLM").setLevel(logging.WARNING)


async def get_completion_async(
    model: str,
    messages: list[dict],
    max_tokens: int = 4096,
    temperature: float = 0.3,
) -> str:
    """
    Return the text of one completion.

    Args:
        model: LiteLLM model id, e.g. "gemini/gemini-2.0-flash" or "claude-sonnet-4-20250514"
        messages: Chat messages; content may be a list of parts for vision calls
        max_tokens: Output token cap
        temperature: Sampling temperature

    Raises:
        Exception: whatever LiteLLM raises for the provider
    """
    response = await litellm.acompletion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    return response.choices[0].message.content or ""


def image_message(prompt: str, image_data_url: str) -> list[dict]:
    """Build a single user message carrying text plus one inline image."""
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_data_url}},
            ],
        }
    ]
