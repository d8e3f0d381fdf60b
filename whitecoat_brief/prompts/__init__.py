"""Prompt templates for the text and vision models."""

from .loader import render

__all__ = ["render"]
