from abc import ABC, abstractmethod
from typing import Dict, Any


class InferenceProvider(ABC):
    """Abstract base class for multimodal content-generation providers."""

    @abstractmethod
    async def generate_content(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a content-generation request and return the parsed response body."""
        pass

    @abstractmethod
    async def close(self):
        """Close the provider and cleanup resources."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
