"""
Retry wrapper for oracle and tool calls.

Every call to the language model goes through `retry` (directly or via a
RetryPolicy built from config). The default delay is fixed, not
exponential; ExponentialBackoff is available for callers that want it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DelayPolicy(Protocol):
	def delay_ms(self, attempt: int) -> float:
		"""Milliseconds to wait after the given (1-based) failed attempt."""
		...


@dataclass
class FixedDelay:
	"""Wait the same amount after every failed attempt."""
	delay: float = 1000

	def delay_ms(self, attempt: int) -> float:
		return self.delay


@dataclass
class ExponentialBackoff:
	"""Double the wait after each failed attempt, capped at max_delay."""
	base_delay: float = 1000
	max_delay: float = 30000

	def delay_ms(self, attempt: int) -> float:
		return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


async def retry(
	operation: Callable[[], Awaitable[T]],
	max_attempts: int = 3,
	delay_ms: float = 1000,
	*,
	retry_on: tuple[type[BaseException], ...] = (Exception,),
	delay_policy: Optional[DelayPolicy] = None,
	sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
	"""
	Run an async operation, retrying on failure.

	Args:
		operation: Callable that returns a new awaitable each time
		max_attempts: Total attempts including the first
		delay_ms: Fixed delay between attempts (ignored if delay_policy is given)
		retry_on: Exception types that trigger a retry; others propagate at once
		delay_policy: Optional policy computing the delay per attempt
		sleep: Sleep function (injectable for tests)

	Returns:
		The result of the first successful attempt

	Raises:
		The last error once attempts are exhausted
	"""
	if max_attempts < 1:
		raise ValueError("max_attempts must be at least 1")
	policy = delay_policy or FixedDelay(delay_ms)

	for attempt in range(1, max_attempts + 1):
		try:
			return await operation()
		except retry_on as e:
			if attempt >= max_attempts:
				logger.error(f"Operation failed after {max_attempts} attempt(s): {e}")
				raise
			wait = policy.delay_ms(attempt)
			logger.warning(
				f"Attempt {attempt}/{max_attempts} failed ({type(e).__name__}: {e}), "
				f"retrying in {wait:.0f}ms"
			)
			await sleep(wait / 1000)

	raise AssertionError("unreachable")


@dataclass
class RetryPolicy:
	"""Reusable retry settings, usually built from Config."""
	max_attempts: int = 3
	delay_ms: float = 1000
	backoff: Optional[DelayPolicy] = None
	retry_on: tuple[type[BaseException], ...] = (Exception,)
	sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

	@classmethod
	def from_config(cls, config) -> "RetryPolicy":
		return cls(max_attempts=config.retry_attempts, delay_ms=config.retry_delay_ms)

	async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
		return await retry(
			operation,
			self.max_attempts,
			self.delay_ms,
			retry_on=self.retry_on,
			delay_policy=self.backoff,
			sleep=self.sleep,
		)
