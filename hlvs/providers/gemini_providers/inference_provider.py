import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from loguru import logger

from hlvs.exceptions import ConfigurationException, RemoteTransportError
from hlvs.providers.base import InferenceProvider
from hlvs.utils.error_handler import ErrorHandler, RetryPolicy, retry_async

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL_NAME = "gemini-2.5-flash-preview-09-2025"
DEFAULT_OPERATION = "generateContent"


class GeminiInferenceProvider(InferenceProvider):
    """
    Gemini REST provider with retry and exponential backoff.

    Every non-2xx status and every transport fault is treated as the same kind
    of failure and retried according to ``retry_policy``. Once the attempts are
    exhausted the last RemoteTransportError is raised. Successful bodies are
    returned as parsed JSON without any schema validation.

    Example Usage:
    ---------------
    >>> async with GeminiInferenceProvider({"api_key": "<key>"}) as provider:
    >>>     body = await provider.generate_content(
    >>>         {"contents": [{"parts": [{"text": "Describe the scene."}]}]}
    >>>     )
    """

    provider_name = "gemini"

    def __init__(
        self,
        config: Dict[str, Any],
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._session = session
        self._owns_session = session is None
        self.url, self._params = self._initialize_endpoint()

    def _initialize_endpoint(self):
        """Build the endpoint URL and the credential query parameter."""
        api_key = self.config.get("api_key")
        if not api_key:
            raise ConfigurationException("Gemini API key is required")

        base_url = (self.config.get("base_url") or DEFAULT_BASE_URL).rstrip("/")
        model_name = self.config.get("model_name") or DEFAULT_MODEL_NAME
        operation = self.config.get("operation") or DEFAULT_OPERATION
        return f"{base_url}/{model_name}:{operation}", {"key": api_key}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            session_kwargs = {}
            timeout = self.config.get("timeout")
            if timeout:
                session_kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)
            self._session = aiohttp.ClientSession(**session_kwargs)
            self._owns_session = True
        return self._session

    async def _post_once(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._get_session()
        try:
            async with session.post(self.url, params=self._params, json=payload) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise RemoteTransportError(
                        f"API Error: {response.status}",
                        status=response.status,
                        details={"provider": self.provider_name, "body": body[:500]},
                    )
                return await response.json(content_type=None)
        except RemoteTransportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ErrorHandler.handle_provider_error(e, self.provider_name) from e

    async def generate_content(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST ``payload`` to the endpoint, retrying failed attempts."""
        logger.debug(f"Calling {self.provider_name} endpoint {self.url}")
        return await retry_async(
            lambda: self._post_once(payload),
            policy=self.retry_policy,
            exceptions=(RemoteTransportError,),
            sleep=self._sleep,
        )

    async def close(self):
        """Close the HTTP session if this provider created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            logger.info("Closing Gemini inference session")
            await self._session.close()
