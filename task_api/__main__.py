"""
Command line entry point.

    python -m task_api serve
    python -m task_api issue-token 42
"""

import argparse
import sys

import uvicorn

from task_api.auth import TokenCodec
from task_api.config import get_settings
from task_api.errors import ConfigurationError
from task_api.logger import logger


def serve(args: argparse.Namespace) -> int:
    settings = get_settings()
    uvicorn.run(
        "task_api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
        timeout_keep_alive=settings.keep_alive_seconds,
        timeout_graceful_shutdown=settings.shutdown_grace_seconds,
    )
    return 0


def issue_token(args: argparse.Namespace) -> int:
    try:
        token = TokenCodec(get_settings()).issue(args.user_id)
    except ConfigurationError as e:
        logger.error(f"Cannot issue token: {e}")
        return 1
    print(token)
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="task_api", description="Task CRUD API")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Bind address (default: TASK_API_HOST)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default: TASK_API_PORT)")
    serve_parser.set_defaults(func=serve)

    token_parser = subparsers.add_parser("issue-token", help="Print a signed bearer token")
    token_parser.add_argument("user_id", type=int, help="User id to embed in the token")
    token_parser.set_defaults(func=issue_token)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
