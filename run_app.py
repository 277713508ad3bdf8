#!/usr/bin/env python3
"""
Storefront Backend Runner

Usage:
    python run_app.py                    # Development mode with auto-reload
    python run_app.py --mode prod        # Production mode
    python run_app.py --port 8001        # Custom port
"""

import argparse
import sys

from storefront.core.config import settings

def run_app(host: str, port: int, reload: bool, workers: int):
    """Run the FastAPI application"""
    import uvicorn

    print(f"Starting {settings.APP_NAME} on {host}:{port}")
    print(f"API Docs: http://localhost:{port}/api/docs")
    uvicorn.run(
        "storefront.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1 if reload else workers,
        log_level=settings.LOG_LEVEL.lower()
    )

def main():
    parser = argparse.ArgumentParser(description="Storefront Backend Runner")
    parser.add_argument(
        "--mode",
        choices=["dev", "prod"],
        default="dev",
        help="Server mode (default: dev)"
    )
    parser.add_argument("--host", default=settings.HOST, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.PORT, help="Port to bind to")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")

    args = parser.parse_args()

    reload = not args.no_reload and args.mode != "prod"
    run_app(args.host, args.port, reload, settings.WORKERS)
    return 0

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)
