from typing import Dict, Optional, Type
from loguru import logger

from .base import InferenceProvider
from .gemini_providers import GeminiInferenceProvider
from ..exceptions import ConfigurationException
from ..config.settings import HLVSConfig


class ProviderFactory:
    """Factory class for creating provider instances."""

    _inference_providers: Dict[str, Type[InferenceProvider]] = {
        'gemini': GeminiInferenceProvider,
    }

    @classmethod
    def create_inference_provider(
        cls,
        provider_name: str = "gemini",
        config: Optional[HLVSConfig] = None,
        **kwargs,
    ) -> InferenceProvider:
        """
        Create an inference provider instance.

        Args:
            provider_name: Name of a registered provider
            config: Configuration to read endpoint and retry settings from
            **kwargs: Extra constructor arguments (e.g. ``session`` or ``sleep``)

        Returns:
            InferenceProvider instance

        Raises:
            ConfigurationException: If provider is not supported
        """
        if provider_name not in cls._inference_providers:
            raise ConfigurationException(
                f"Unknown inference provider: {provider_name}. "
                f"Supported providers: {list(cls._inference_providers.keys())}"
            )

        config = config or HLVSConfig()
        provider_class = cls._inference_providers[provider_name]
        logger.info(f"Creating inference provider: {provider_name}")
        return provider_class(
            config.gemini.model_dump(),
            retry_policy=config.retry.to_policy(),
            **kwargs,
        )


# Global provider factory instance
provider_factory = ProviderFactory()
