#!/usr/bin/env python
"""Backup service API server launcher."""

import argparse
import sys

import uvicorn

from vetbackup.config.logging_config import get_logger, setup_logging
from vetbackup.config.settings import settings

logger = get_logger(__name__)


def create_arg_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Vet Clinic Backup Service API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  MONGO_URI                Datastore connection string (required)
  ADMIN_API_TOKEN          Bearer token accepted for admin calls
  API_HOST                 Server host (default: 0.0.0.0)
  API_PORT                 Server port (default: 5000)
  BACKUP_SCHEDULE          Crontab expression (default: 0 0 * * *)
  RETENTION_WINDOW         Dump archives to keep (default: 7)
  LOG_LEVEL                Logging level (default: INFO)

The scheduler lives inside the server process, so the server always runs a
single worker.
"""
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind the server to (default: from config/env)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to bind the server to (default: from config/env)"
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    return parser


def main() -> None:
    """Run the API server."""
    args = create_arg_parser().parse_args()
    setup_logging(settings.log_level, settings.log_file)

    host = args.host or settings.api_host
    port = args.port or settings.api_port
    if not (1 <= port <= 65535):
        raise ValueError(f"Port must be between 1 and 65535, got {port}")

    logger.info("Backup service configuration", host=host, port=port, schedule=settings.backup_schedule)
    try:
        uvicorn.run(
            "vetbackup.api.main:create_default_app",
            factory=True,
            host=host,
            port=port,
            reload=args.reload,
            workers=1,
            log_level=settings.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Server interrupted by user")
    except Exception as e:
        logger.error("Server startup failed", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
