"""WhiteCoat Brief: submission intake and ad brief generation service."""

__version__ = "0.1.0"
