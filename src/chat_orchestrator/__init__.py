"""Streaming chat orchestrator: moderation, attachment handling and tool-augmented completion."""

__version__ = "0.1.0"
