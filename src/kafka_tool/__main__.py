"""
Main entry point for the Kafka Tool.

Starts the local API server a shell talks to.
"""

import sys

import uvicorn

from kafka_tool.config import get_settings
from kafka_tool.logger_config import setup_logger


def main():
    """Run the API server."""
    logger = setup_logger('kafka_tool')
    settings = get_settings()

    logger.info(f"Starting Kafka Tool API server at http://{settings.api_host}:{settings.api_port}")
    logger.info(f"Connection profiles are stored in {settings.config_path}")

    try:
        uvicorn.run(
            "kafka_tool.api.api_server:app",
            host=settings.api_host,
            port=settings.api_port,
            log_level="info"
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except OSError as e:
        logger.error(f"Server failed to start: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
