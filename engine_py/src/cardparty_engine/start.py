#!/usr/bin/env python3
"""Startup script for the card party backend"""

import logging
import os

import uvicorn

logger = logging.getLogger(__name__)


def main():
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    port = int(os.getenv("PORT", 3001))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting card party backend on {host}:{port}")
    logger.info(f"Health check available at: http://{host}:{port}/health")
    logger.info(f"WebSocket endpoint: ws://{host}:{port}/ws")

    uvicorn.run(
        "cardparty_engine.main:app",
        host=host,
        port=port,
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "info").lower()
    )

if __name__ == "__main__":
    main()
