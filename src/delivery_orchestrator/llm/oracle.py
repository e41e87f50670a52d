"""
Oracle - The language model behind the manager and the role agents.

The oracle is opaque: a prompt goes in, text comes out. The default
implementation shells out to the `claude` CLI in print mode. Each call has
an explicit timeout; retries are the caller's job (see retry.RetryPolicy).
"""

import asyncio
import logging
from typing import Optional, Protocol

from ..errors import ModelInvocationError

logger = logging.getLogger(__name__)


class Oracle(Protocol):
	async def invoke(self, prompt: str, mode: str = "standard", system: Optional[str] = None) -> str:
		"""Return the model's reply to prompt."""
		...


class ClaudeCliOracle:
	"""
	Oracle backed by the `claude` CLI.

	Usage:
		oracle = ClaudeCliOracle(timeout=300, mode_models={"standard": "sonnet"})
		reply = await oracle.invoke("Summarize the plan", mode="standard")
	"""

	def __init__(
		self,
		command: str = "claude",
		timeout: float = 300.0,
		mode_models: Optional[dict[str, str]] = None,
		default_mode: str = "standard",
	):
		self.command = command
		self.timeout = timeout
		self.mode_models = mode_models or {}
		self.default_mode = default_mode

	def model_for(self, mode: str) -> Optional[str]:
		"""Model name for a project mode, falling back to the default mode."""
		return self.mode_models.get(mode) or self.mode_models.get(self.default_mode)

	def build_args(self, mode: str, system: Optional[str]) -> list[str]:
		args = [self.command, "--print", "--output-format", "text"]
		model = self.model_for(mode)
		if model:
			args.extend(["--model", model])
		if system:
			args.extend(["--append-system-prompt", system])
		return args

	async def invoke(self, prompt: str, mode: str = "standard", system: Optional[str] = None) -> str:
		"""
		Run one CLI call.

		Raises:
			ModelInvocationError: On timeout, missing CLI, or non-zero exit
		"""
		args = self.build_args(mode, system)
		try:
			process = await asyncio.create_subprocess_exec(
				*args,
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
			)
		except FileNotFoundError as e:
			raise ModelInvocationError(f"{self.command} CLI not found") from e

		try:
			stdout, stderr = await asyncio.wait_for(
				process.communicate(input=prompt.encode()),
				timeout=self.timeout,
			)
		except asyncio.TimeoutError as e:
			process.kill()
			await process.wait()
			raise ModelInvocationError(f"{self.command} CLI timed out after {self.timeout:.0f}s") from e

		if process.returncode != 0:
			message = stderr.decode(errors="replace").strip()
			logger.error(f"{self.command} CLI error (exit {process.returncode}): {message}")
			raise ModelInvocationError(f"{self.command} CLI exited with {process.returncode}: {message[:500]}")

		return stdout.decode(errors="replace")
