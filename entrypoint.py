import argparse

import uvicorn

from constants import HOST, LOG_FILE, LOG_LEVEL, PORT
from logging_config import get_logger, setup_logging

# Configure logging before uvicorn imports the app module
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

logger = get_logger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="WebRTC signaling relay")
    parser.add_argument("--host", default=HOST, help=f"listen address (default: {HOST})")
    parser.add_argument("--port", type=int, default=PORT, help=f"listen port (default: {PORT})")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logger.info(f"Starting signaling relay on ws://{args.host}:{args.port}/ws")
    # A single worker: the registry lives in this process's memory
    uvicorn.run("app:app", host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
