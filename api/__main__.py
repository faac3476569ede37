"""Command line interface for running the API server."""
import argparse
import asyncio
import logging

import uvicorn

from config import settings_conf
from database import init_db, close as db_close
from messaging.realtime import feed

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

class UvicornServer:
    """Wrapper for running uvicorn with proper lifecycle management."""

    def __init__(self, app_path: str = "api:app", host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
        self.config = uvicorn.Config(
            app_path,
            host=host,
            port=port,
            reload=reload,
            log_level="info"
        )
        self.server = uvicorn.Server(self.config)

    async def run(self):
        """Serve until uvicorn receives SIGINT or SIGTERM."""
        await self.server.serve()

async def main(host: str, port: int, force_recreate: bool = False):
    """Initialize the database, start the message feed and serve the API."""
    server = UvicornServer(host=host, port=port)

    try:
        logger.info("Initializing database...")
        await init_db(force_recreate=force_recreate)

        logger.info("Starting message feed...")
        await feed.start()

        logger.info(f"Serving API on {host}:{port}")
        await server.run()
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        raise
    finally:
        logger.info("Stopping message feed...")
        await feed.stop()

        logger.info("Closing database connections...")
        await db_close()

        logger.info("Cleanup complete.")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the sneaker seller API")
    parser.add_argument('--host', default=settings_conf['api_host'])
    parser.add_argument('--port', type=int, default=settings_conf['api_port'])
    parser.add_argument(
        '--force-recreate',
        action='store_true',
        help="Drop and recreate all tables before starting"
    )
    args = parser.parse_args()

    asyncio.run(main(args.host, args.port, args.force_recreate))
