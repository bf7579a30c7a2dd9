#!/usr/bin/env python3
"""
Gravatar MCP Server Runner

Usage:
    python -m gravatar_mcp.run_server                     # MCP server over STDIO
    python -m gravatar_mcp.run_server --http --port 3000  # MCP server over streamable HTTP
    python -m gravatar_mcp.run_server oauth               # OAuth front door
"""

import sys
import asyncio
import argparse
import logging

from gravatar_mcp.utils.logging import configure_logging, get_logger

logger = get_logger("gravatar_mcp.runner")


def run_main_server(transport: str = "stdio", host: str = "localhost", port: int = 3000) -> int:
    """Run the Gravatar MCP server"""
    from gravatar_mcp.server import create_server, run_with_stdio, run_with_http

    logger.info(f"Starting Gravatar MCP server with {transport} transport")
    server = create_server()

    if transport == "stdio":
        run_with_stdio(server)
    elif transport == "http":
        run_with_http(server, host, port)
    else:
        logger.error(f"Unsupported transport: {transport}")
        return 1
    return 0


def run_oauth_server(host: str = "localhost", port: int = 3001) -> int:
    """Run the OAuth front door"""
    from gravatar_mcp.oauth_proxy.server import OAuthProxyServer

    try:
        proxy = OAuthProxyServer()
    except ValueError as e:
        logger.error(f"Invalid OAuth configuration: {e}")
        return 1

    try:
        asyncio.run(proxy.serve_forever(host=host, port=port))
    except KeyboardInterrupt:
        logger.info("OAuth front door stopped by user")
    return 0


def build_parser() -> argparse.ArgumentParser:
    from gravatar_mcp.oauth_proxy.models import ProxyConfig

    proxy_config = ProxyConfig()
    parser = argparse.ArgumentParser(
        prog="gravatar-mcp",
        description="Gravatar MCP Server Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s                          # Run MCP server (STDIO)
    %(prog)s --http --port 3000       # Run MCP server over streamable HTTP (no auth)
    %(prog)s oauth --oauth-port 3001  # Run the OAuth front door
        """
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["oauth"],
        help="oauth: run the OAuth front door instead of the MCP server"
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help="Serve MCP over streamable HTTP instead of STDIO (no authentication)"
    )
    parser.add_argument(
        "--host",
        default="localhost",
        help="Host for HTTP transport (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for HTTP transport (default: 3000)"
    )
    parser.add_argument(
        "--oauth-host",
        default=proxy_config.host,
        help=f"Host for the OAuth front door (default: {proxy_config.host})"
    )
    parser.add_argument(
        "--oauth-port",
        type=int,
        default=proxy_config.port,
        help=f"Port for the OAuth front door (default: {proxy_config.port})"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=proxy_config.log_level.upper(),
        help="Logging level (default: LOG_LEVEL or INFO)"
    )
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    configure_logging(log_level=getattr(logging, args.log_level, logging.INFO))

    try:
        if args.command == "oauth":
            return run_oauth_server(args.oauth_host, args.oauth_port)
        if args.http:
            return run_main_server("http", args.host, args.port)
        return run_main_server("stdio")
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
