import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import httpx

import config
from benchmark_driver import TerminationPolicy, run_benchmark, run_single_shot
from errors import ConfigError
from metrics import BenchStats, Failure
from request_executor import RequestSpec, unparseable_headers
from transport import HttpxConnector, Target

logger = logging.getLogger("httpbench")


def setup_logging(level=config.LOG_LEVEL, log_file: Optional[str] = config.LOG_FILE):
    handlers: List[logging.Handler] = [logging.StreamHandler()]  # stderr
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w'))
    logging.basicConfig(level=level, format=config.LOG_FORMAT, handlers=handlers, force=True)
    # httpx logs every request at INFO; keep it out of benchmark output.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_target(url: str) -> Target:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ConfigError(f"Invalid URL: {url}", e) from e
    if not parsed.scheme:
        raise ConfigError(f"Invalid URL: {url}: missing scheme")

    host = parsed.raw_host.decode('ascii')
    if not host:
        raise ConfigError("URL must have a host")

    port = parsed.port or config.DEFAULT_PORTS.get(parsed.scheme)
    if port is None:
        raise ConfigError(f"Could not determine port for scheme {parsed.scheme!r}")

    path = parsed.raw_path.decode('ascii') or "/"
    return Target(host=host, port=port, tls=parsed.scheme == "https", path=path, sni=host)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="httpbench", description="Benchmark a single HTTP endpoint.")
    parser.add_argument("--url", required=True, help="URL to connect to")
    parser.add_argument("--method", default=config.DEFAULT_METHOD, help="HTTP method (GET, POST, PUT, DELETE, etc.)")
    parser.add_argument("--body", help="Request body (for POST, PUT, etc.)")
    parser.add_argument("--content-type", default=config.DEFAULT_CONTENT_TYPE,
                        help="Content-Type sent along with --body")
    parser.add_argument("--insecure", action="store_true",
                        help="Allow insecure connections (skip certificate and hostname verification)")
    parser.add_argument("--duration", type=float, default=0,
                        help="Duration in seconds to run the benchmark (0 = single request)")
    parser.add_argument("-n", "--requests", type=int, default=0,
                        help="Number of requests to make (0 = unlimited, use with --duration)")
    parser.add_argument("-H", "--header", dest="headers", action="append", default=[], metavar="HEADER",
                        help='Custom header to include in requests (format: "Key: Value"); repeatable')
    parser.add_argument("--timeout", type=float, default=config.REQUEST_TIMEOUT_SECONDS,
                        help="Per-request timeout in seconds (default: none)")
    parser.add_argument("--log-level", default=logging.getLevelName(config.LOG_LEVEL),
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=config.LOG_FILE)
    return parser


def policy_from_args(args: argparse.Namespace) -> TerminationPolicy:
    # The command line keeps the "0 = off" convention; internally bounds are optional.
    if args.duration < 0 or args.requests < 0:
        raise ConfigError("--duration and --requests must not be negative")
    return TerminationPolicy(
        duration=args.duration or None,
        max_requests=args.requests or None,
    )


async def run(args: argparse.Namespace) -> int:
    target = parse_target(args.url)
    policy = policy_from_args(args)

    for line in unparseable_headers(args.headers):
        logger.warning(f"Ignoring header without ':' separator: {line!r}")

    spec = RequestSpec(
        target=target,
        method=args.method,
        headers=tuple(args.headers),
        body=args.body.encode('utf-8') if args.body is not None else None,
        content_type=args.content_type,
    )

    connector = HttpxConnector(insecure=args.insecure)
    try:
        if policy.single_shot:
            result = await run_single_shot(connector, spec, request_timeout=args.timeout)
            return 1 if isinstance(result, Failure) else 0

        stats = BenchStats()
        await run_benchmark(connector, spec, policy, stats, request_timeout=args.timeout)
        return 0
    finally:
        await connector.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        return asyncio.run(run(args))
    except ConfigError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Benchmark interrupted by user (Ctrl+C).")
        return 130


if __name__ == "__main__":
    sys.exit(main())
