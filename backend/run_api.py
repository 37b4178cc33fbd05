#!/usr/bin/env python
"""
Run the Photoforge API server.

Usage:
    python run_api.py
    python run_api.py --reload        # Development mode
    python run_api.py --no-sweeper    # Don't start the background sweeper
"""

import argparse
import os

import uvicorn

from shared.config import get_settings


def main():
    parser = argparse.ArgumentParser(description="Run Photoforge API server")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--host", type=str, help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to bind to")
    parser.add_argument("--no-sweeper", action="store_true", help="Disable the background sweeper")
    args = parser.parse_args()

    if args.no_sweeper:
        # Read by the worker process, which may be a reload subprocess
        os.environ["SWEEPER_ENABLED"] = "false"

    settings = get_settings()

    uvicorn.run(
        "api:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload or settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
