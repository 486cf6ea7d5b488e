"""
Process entry point.

    python -m twilio_mcp [--mode {all,stdio,webhook}]

"all" runs the MCP stdio server and the webhook receiver in one event loop,
so both entry points share the database engine and the threading lock.
"""

import argparse
import asyncio
import logging
import sys

import uvicorn

from twilio_mcp.config import settings
from twilio_mcp.logging_utils import setup_logging
from twilio_mcp.main import app
from twilio_mcp.mcp_server import run_stdio_server
from twilio_mcp.storage import init_db

logger = logging.getLogger("twilio_mcp")


def _webhook_server() -> uvicorn.Server:
    # log_config=None keeps the JSON handlers installed by setup_logging
    config = uvicorn.Config(
        app,
        host=settings.WEBHOOK_HOST,
        port=settings.WEBHOOK_PORT,
        log_config=None,
    )
    return uvicorn.Server(config)


async def _run_all() -> None:
    webhook = _webhook_server()
    webhook_task = asyncio.create_task(webhook.serve())
    try:
        await run_stdio_server()
    finally:
        # stdin closed: the MCP client went away, take the webhook server down too
        webhook.should_exit = True
        await webhook_task


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="twilio-mcp", description="Twilio SMS MCP server and webhook receiver")
    parser.add_argument(
        "--mode",
        choices=("all", "stdio", "webhook"),
        default="all",
        help="which entry points to run (default: all)",
    )
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    try:
        init_db()
        if args.mode == "stdio":
            asyncio.run(run_stdio_server())
        elif args.mode == "webhook":
            asyncio.run(_webhook_server().serve())
        else:
            asyncio.run(_run_all())
    except KeyboardInterrupt:
        return 0
    except Exception:
        logger.exception("Failed to start Twilio MCP server")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
