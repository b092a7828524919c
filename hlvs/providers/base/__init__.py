from .inference_provider import InferenceProvider

__all__ = [
    'InferenceProvider',
]
