import argparse
import asyncio
import dataclasses
import logging
import sys

from geminikit.config import ClientConfig, ServerConfig
from geminikit.errors import GeminiError
from geminikit.protocols.client import GeminiClient
from geminikit.protocols.server import GeminiServer

logger = logging.getLogger("geminikit")

LOG_FORMAT = "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"


def configure_logging(level: int) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.setLevel(level)
    logger.addHandler(handler)


def override(config, **options):
    """
    Apply the command line options that were explicitly provided.
    """
    changes = {key: value for key, value in options.items() if value is not None}
    return dataclasses.replace(config, **changes)


async def serve(args: argparse.Namespace) -> int:
    config = override(
        ServerConfig.from_prefixed_env(),
        address=args.host,
        port=args.port,
        root=args.dir,
        certificate_path=args.cert,
        key_path=args.key,
        directory_index=args.directory_index or None,
    )
    server = GeminiServer(config)
    try:
        await server.serve_forever()
    finally:
        await server.stop()
    return 0


async def fetch(args: argparse.Namespace) -> int:
    config = override(ClientConfig.from_prefixed_env(), max_redirections=args.max_redirections)
    client = GeminiClient(config)
    response = await client.request(args.url)

    for redirection in client.redirections:
        kind = "permanent" if redirection.permanent else "temporary"
        print(f"=> {redirection.url} ({kind})", file=sys.stderr)

    sys.stdout.buffer.write(response.get_header())
    if response.body is not None:
        sys.stdout.buffer.write(response.body)
    sys.stdout.buffer.flush()
    return 0 if response.is_success() else 1


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geminikit", description="A gemini client & static file server"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every request")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # fmt: off
    serve_parser = subparsers.add_parser("serve", help="Serve a directory over gemini")
    serve_parser.add_argument("--host", help="Address to bind to", metavar="ADDR")
    serve_parser.add_argument("--port", help="Port to listen on", type=int)
    serve_parser.add_argument(
        "--dir",
        help="Root directory, containing one sub-directory per host and a \"default\" fallback",
        metavar="DIR",
    )
    serve_parser.add_argument("--cert", help="Server TLS certificate file", metavar="FILE")
    serve_parser.add_argument("--key", help="Server TLS private key file", metavar="FILE")
    serve_parser.add_argument(
        "--directory-index",
        action="store_true",
        help="Auto-generate listings for directories without an index file",
    )
    serve_parser.set_defaults(func=serve)

    fetch_parser = subparsers.add_parser("fetch", help="Request a URL and print the response")
    fetch_parser.add_argument("url")
    fetch_parser.add_argument("--max-redirections", type=int, metavar="N")
    fetch_parser.set_defaults(func=fetch)
    # fmt: on

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    configure_logging(logging.INFO if args.verbose else logging.WARNING)

    try:
        return asyncio.run(args.func(args))
    except (GeminiError, ValueError) as e:
        logger.error(f"{e}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
