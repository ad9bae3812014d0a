"""Script to launch the ChitChat server."""

from __future__ import annotations

import argparse
import logging
import os
import sys

import uvicorn

# Ensure src/ is on sys.path (so imports work when run from a checkout)
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from chitchat.config import load_config  # noqa: E402
from chitchat.server import create_app  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the ChitChat server.")
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOST", "0.0.0.0"),
        help="Host to bind the server to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", "3000")),
        help="Port to bind the server to (default: 3000)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config file (default: $CHITCHAT_CONFIG or config/default.yaml)",
    )
    parser.add_argument(
        "-m",
        "--max-history",
        type=int,
        default=None,
        help="Maximum number of messages kept; all messages are kept if not given",
    )
    args = parser.parse_args()

    if args.max_history is not None:
        if args.max_history < 0:
            parser.error("--max-history must be >= 0")
        os.environ["CHITCHAT__STORE__MAX_HISTORY"] = str(args.max_history)

    cfg = load_config(args.config)
    level = str(cfg.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # A single worker: the store lives in process memory.
    app = create_app(args.config)
    uvicorn.run(app, host=args.host, port=args.port, log_level=level.lower())


if __name__ == "__main__":
    main()
