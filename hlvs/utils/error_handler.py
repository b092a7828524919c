import asyncio
from dataclasses import dataclass
from typing import TypeVar, Callable, Any, Awaitable, Iterator, Type, Union
from loguru import logger
from ..exceptions import ProviderException, RemoteTransportError, ValidationException

T = TypeVar('T')


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    max_attempts:
        Total number of attempts, the first one included.
    base_delay:
        Seconds to wait after the first failed attempt.
    multiplier:
        Factor applied to the delay after every failed attempt.
    """
    max_attempts: int = 5
    base_delay: float = 1.0
    multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValidationException("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValidationException("base_delay must not be negative")
        if self.multiplier < 1:
            raise ValidationException("multiplier must be at least 1")

    def delays(self) -> Iterator[float]:
        """Yield the waits between consecutive attempts (max_attempts - 1 values)."""
        delay = self.base_delay
        for _ in range(self.max_attempts - 1):
            yield delay
            delay *= self.multiplier


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    exceptions: Union[Type[Exception], tuple] = Exception,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Await ``func()`` until it succeeds or ``policy.max_attempts`` is reached.

    Exceptions outside ``exceptions`` propagate immediately. When every attempt
    fails the last exception is re-raised, with no wait after the final attempt.

    Args:
        func: Zero-argument coroutine function performing one attempt
        policy: Attempt count and backoff schedule
        exceptions: Exception types that trigger a retry
        sleep: Coroutine function used to wait between attempts
    """
    delays = policy.delays()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func()
        except exceptions as e:
            if attempt == policy.max_attempts:
                logger.error(f"All {policy.max_attempts} attempts failed: {e}")
                raise

            delay = next(delays)
            logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay}s...")
            await sleep(delay)


class ErrorHandler:
    """Centralized error handling utilities."""

    @staticmethod
    def handle_provider_error(e: Exception, provider_name: str) -> ProviderException:
        """Convert a transport-level exception into a RemoteTransportError."""
        error_details = {
            "provider": provider_name,
            "original_exception": type(e).__name__,
            "message": str(e)
        }

        logger.debug(f"Provider {provider_name} transport error: {e!r}")
        return RemoteTransportError(
            f"Provider {provider_name} failed: {type(e).__name__}: {e}",
            details=error_details
        )
