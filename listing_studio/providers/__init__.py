"""Clients for the external generative capability."""

from .generative import GenerativeService
from .gemini import GeminiClient

__all__ = [
    "GenerativeService",
    "GeminiClient",
]
