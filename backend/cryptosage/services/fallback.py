"""
Provider fallback chains.

A chain tries its providers strictly in priority order, one at a time, each
call bounded by a timeout. The first call that completes and decodes wins.
When every provider failed, ChainExhaustedError carries all the causes.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, Type, TypeVar

from pydantic import ValidationError

from cryptosage.services.base import (
    ChainExhaustedError,
    DecodeError,
    NetworkError,
    ProviderError,
    ServerError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures worth an in-place retry before moving down the chain
TRANSIENT_ERRORS = (NetworkError, ServerError)


@dataclass
class ProviderStep(Generic[T]):
    """
    One entry of a fallback chain.

    A step with `recovers` set only runs when the failure right before it is
    an instance of that type (e.g. a regional mirror after a region block),
    and it is called with that failure. Other steps are called with no
    arguments.
    """

    name: str
    call: Callable[..., Awaitable[T]]
    recovers: Optional[Type[ProviderError]] = None
    retries: int = 0
    retry_delay: float = 1.0


class FallbackChain(Generic[T]):
    """Ordered provider chain for one capability."""

    def __init__(self, name: str, steps: Sequence[ProviderStep[T]], timeout: float = 15.0):
        self.name = name
        self._steps = list(steps)
        self._timeout = timeout
        self.last_provider: Optional[str] = None

    @property
    def providers(self) -> list[str]:
        return [step.name for step in self._steps]

    async def run(self) -> T:
        """Return the first successful provider result."""
        failures: list[ProviderError] = []

        for step in self._steps:
            trigger = failures[-1] if failures else None
            if step.recovers is not None and not isinstance(trigger, step.recovers):
                continue

            try:
                result = await self._attempt(step, trigger)
            except ProviderError as e:
                logger.info(f"{self.name}: {step.name} failed ({e.message})")
                failures.append(e)
                continue

            if failures:
                logger.info(f"{self.name}: served by fallback provider {step.name}")
            self.last_provider = step.name
            return result

        logger.warning(f"{self.name}: all providers failed ({len(failures)} attempts)")
        raise ChainExhaustedError(self.name, failures)

    async def _attempt(self, step: ProviderStep[T], trigger: Optional[ProviderError]) -> T:
        attempt = 0
        while True:
            try:
                return await self._call_once(step, trigger)
            except TRANSIENT_ERRORS as e:
                if attempt >= step.retries:
                    raise
                attempt += 1
                logger.debug(f"{self.name}: retrying {step.name} in {step.retry_delay}s: {e}")
                await asyncio.sleep(step.retry_delay)

    async def _call_once(self, step: ProviderStep[T], trigger: Optional[ProviderError]) -> T:
        coro = step.call(trigger) if step.recovers is not None else step.call()
        try:
            return await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise NetworkError(step.name, f"timed out after {self._timeout:g}s") from e
        except ValidationError as e:
            # Payload matched the wire schema but not the domain record
            raise DecodeError(
                step.name,
                f"invalid record ({e.error_count()} errors)",
                {"errors": [err.get("msg") for err in e.errors()[:3]]},
            ) from e
