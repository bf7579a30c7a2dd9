"""Tool registry for discovering and registering MCP tool modules."""

import importlib
import logging
import inspect
import os
import pkgutil
from typing import Dict, List

from fastmcp import FastMCP

from gravatar_mcp.utils.gravatar_client import GravatarClient

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for discovering and registering MCP tools.

    Each tool module exposes one or more ``register_*_tools(server, client)``
    functions. The registry records which functions ran, grouped by the
    module they came from.
    """

    def __init__(self):
        self.categories: Dict[str, List[str]] = {}  # category -> [register function names]

    def register_tool_function(self, register_func, server: FastMCP, client: GravatarClient,
                               category: str = "general"):
        """
        Run a single registration function and record it.

        Args:
            register_func: Callable taking (server, client[, registry])
            server: FastMCP server instance
            client: Gravatar client wrapper
            category: Category for organizing tools
        """
        sig = inspect.signature(register_func)
        if 'registry' in sig.parameters:
            register_func(server, client, registry=self)
        else:
            register_func(server, client)

        self.categories.setdefault(category, []).append(register_func.__name__)
        logger.debug(f"Ran {register_func.__name__} in category '{category}'")

    def register_tools_from_module(self, module, server: FastMCP, client: GravatarClient):
        """
        Scan a module for register_*_tools functions and run them.

        Args:
            module: The module to scan
            server: FastMCP server instance
            client: Gravatar client wrapper
        """
        category = module.__name__.rsplit('.', 1)[-1]
        if category.endswith('_tools'):
            category = category[:-len('_tools')]

        for attr_name in dir(module):
            if attr_name.startswith('register_') and attr_name.endswith('_tools'):
                register_func = getattr(module, attr_name)
                if not callable(register_func):
                    continue
                try:
                    self.register_tool_function(register_func, server, client, category)
                except Exception as e:
                    logger.error(f"Error registering tools from {module.__name__}.{attr_name}: {str(e)}")
                    raise
                logger.info(f"Registered tools from {module.__name__}.{attr_name}")

    def auto_discover_tools(self, server: FastMCP, client: GravatarClient):
        """
        Auto-discover and register all tools from the tools package.

        Args:
            server: FastMCP server instance
            client: Gravatar client wrapper
        """
        import gravatar_mcp.tools as tools_package

        tools_path = os.path.dirname(tools_package.__file__)
        for _, name, is_pkg in pkgutil.iter_modules([tools_path]):
            if is_pkg or name == 'tool_registry':
                continue
            module = importlib.import_module(f"gravatar_mcp.tools.{name}")
            self.register_tools_from_module(module, server, client)

        logger.info(f"Auto-discovered tool modules: {', '.join(self.list_categories())}")

    def list_categories(self) -> List[str]:
        """List all registered tool categories."""
        return sorted(self.categories.keys())

    async def list_tool_names(self, server: FastMCP) -> List[str]:
        """Names of every tool currently registered on the server."""
        tools = await server.get_tools()
        return sorted(tools.keys())
