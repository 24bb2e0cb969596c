#!/usr/bin/env python3
"""
Acquisition Planner - Main Entry Point

Usage:
    python -m acquisition_planner.main              # Run server (default port 8010)
    python -m acquisition_planner.main --port 5000  # Run on custom port
"""
import argparse

import uvicorn

from acquisition_planner.config import get_settings


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description='Acquisition Planner - subscriber acquisition planning API',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m acquisition_planner.main                    # Start on port 8010 (default)
  python -m acquisition_planner.main --port 5000        # Start on port 5000
  python -m acquisition_planner.main --host 127.0.0.1   # Bind to localhost only
        """
    )
    parser.add_argument(
        '--port',
        type=int,
        default=settings.PORT,
        help=f'Port to run the server on (default: {settings.PORT})'
    )
    parser.add_argument(
        '--host',
        default=settings.HOST,
        help=f'Host to bind to (default: {settings.HOST})'
    )
    parser.add_argument(
        '--reload',
        action='store_true',
        help='Enable auto-reload on code changes'
    )
    parser.add_argument(
        '--log-level',
        default=settings.LOG_LEVEL.lower(),
        help='Uvicorn log level (default: from ACQ_LOG_LEVEL)'
    )

    args = parser.parse_args()

    display_host = args.host if args.host != '0.0.0.0' else 'localhost'
    print("=" * 70)
    print("  Acquisition Planner")
    print("=" * 70)
    print(f"API:       http://{display_host}:{args.port}")
    print(f"API Docs:  http://{display_host}:{args.port}/docs")
    print("Press CTRL+C to stop the server")
    print("=" * 70)

    uvicorn.run(
        "acquisition_planner.app:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload
    )


if __name__ == '__main__':
    main()
