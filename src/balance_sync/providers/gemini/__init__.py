"""Gemini API-key provider."""
from balance_sync.providers.gemini.provider import GeminiProvider
from balance_sync.providers.gemini.signing import NonceGenerator

__all__ = ["GeminiProvider", "NonceGenerator"]
