from .inference_provider import GeminiInferenceProvider

__all__ = [
    'GeminiInferenceProvider',
]
