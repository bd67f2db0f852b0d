"""Run the CSRF demo application under uvicorn.

Configure SECRET_KEY (and optionally CSRF_* variables) in your .env, then:
    python scripts/serve.py --port 5555
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import uvicorn

# Ensure the project root is on sys.path so `csrf_sync` imports resolve
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from csrf_sync.core.config import get_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the csrf-sync demo application.")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    parser.add_argument("--port", type=int, default=5555, help="Port to listen on.")
    parser.add_argument("--reload", action="store_true", help="Reload on source changes.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    uvicorn.run(
        "csrf_sync.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_config=None,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
