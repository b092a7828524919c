"""Provider system for HLVS."""

from .base import InferenceProvider
from .factory import ProviderFactory, provider_factory
from .gemini_providers import GeminiInferenceProvider

__all__ = [
    # Base classes
    'InferenceProvider',
    # Factory
    'ProviderFactory',
    'provider_factory',
    # Gemini providers
    'GeminiInferenceProvider',
]
