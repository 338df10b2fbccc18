"""Tool server manager entry point.

Runs the tool server manager as a standalone process: loads the server
configs named by MCP_SERVERS_FILE, starts the enabled servers and the
health monitor, and stops everything on SIGINT/SIGTERM.

Usage:
    python -m src.worker_mcp
"""

import asyncio
import logging
import signal

from src.configuration.config import get_settings
from src.configuration.factories import create_mcp_manager

logger = logging.getLogger("src.worker_mcp")

shutdown_event = asyncio.Event()


async def main():
    """Main entry point for the tool server manager."""
    settings = get_settings()

    logger.info("=" * 60)
    logger.info("Starting tool server manager")
    logger.info("=" * 60)
    logger.info(f"Servers file: {settings.mcp_servers_file or '(none)'}")
    logger.info(f"Auto start: {settings.mcp_auto_start}")
    logger.info(f"Request timeout: {settings.mcp_request_timeout}s")
    logger.info("=" * 60)

    manager = create_mcp_manager()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        snapshot = await manager.start()
        for server_id, status in snapshot.items():
            logger.info(f"  - {server_id}: {status.state.value} ({status.tool_count} tools)")
        logger.info("Tool server manager is running. Press Ctrl+C to stop.")

        await shutdown_event.wait()

    except Exception as e:
        logger.exception(f"Manager error: {e}")
        raise

    finally:
        logger.info("Shutting down tool server manager...")
        await manager.shutdown()


def handle_signal(sig):
    """Handle shutdown signals."""
    logger.info(f"Received signal {sig}")
    shutdown_event.set()


if __name__ == "__main__":
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(main())
