#!/usr/bin/env python3
"""
Run the PropertyFlow API server for local development.

Usage:
    python run.py
    python run.py --port 9000 --no-reload
"""

import argparse

import uvicorn

from utils.config import Config


def main():
    """Start the web server."""
    config = Config.load()

    parser = argparse.ArgumentParser(description="PropertyFlow development server")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    args = parser.parse_args()

    print(f"Starting PropertyFlow on http://{args.host}:{args.port}")
    print(f"Record store: {config.database_url}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:app",
        host=args.host,
        port=args.port,
        reload=config.debug and not args.no_reload,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
