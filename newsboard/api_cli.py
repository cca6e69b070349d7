"""
CLI entrypoint for the FastAPI server.

Usage:
  newsboard-api --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Newsboard API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    parser.add_argument("--log-level", default="info")
    args = parser.parse_args()

    import uvicorn

    from newsboard.logging_config import configure_logging

    configure_logging()
    uvicorn.run(
        "newsboard.api:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
