"""Prompt template loader.

Loads prompt templates from this directory and renders them with
provided variables using string.Template ($var syntax).

JSON braces in templates are preserved as-is; only $variable
placeholders are substituted.
"""

from functools import lru_cache
from pathlib import Path
from string import Template

_PROMPTS_DIR = Path(__file__).parent


@lru_cache(maxsize=32)
def _load_raw(name: str) -> str:
    """Load raw template text from file. Cached for performance."""
    path = _PROMPTS_DIR / f"{name}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")
    return path.read_text(encoding="utf-8")


def render(name: str, **kwargs: str) -> str:
    """Load a prompt template and render it with the given variables.

    Args:
        name: Template filename without extension (e.g. "concept_system")
        **kwargs: Template variables to substitute

    Returns:
        Rendered prompt string

    Raises:
        FileNotFoundError: If template file doesn't exist
        KeyError: If a required placeholder has no value provided
    """
    template = Template(_load_raw(name))
    return template.substitute(**kwargs)
