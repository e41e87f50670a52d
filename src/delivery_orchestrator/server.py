"""delivery-orchestrator MCP server."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .logging_config import setup_logging
from .runtime import Runtime
from .tools import register_all_tools

logger = logging.getLogger(__name__)

config = load_config()
setup_logging(config.log_level, config.log_dir)
runtime = Runtime(config)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[Runtime]:
	await runtime.start()
	try:
		yield runtime
	finally:
		await runtime.stop()


mcp = FastMCP("delivery-orchestrator", lifespan=lifespan)
register_all_tools(mcp, runtime)
