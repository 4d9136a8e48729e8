"""CLI entrypoint for the worker bridge."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
import threading
from collections.abc import Sequence

from pydantic import ValidationError

from camunda_flow import __version__
from camunda_flow.bootstrap import Bootstrap
from camunda_flow.client import ExternalTaskClient
from camunda_flow.config import WorkerSettings
from camunda_flow.dispatcher import Dispatcher
from camunda_flow.logging import configure_logging
from camunda_flow.subscription import SubscriptionDescriptor

logger = logging.getLogger(__name__)


def load_descriptors(target: str) -> list[SubscriptionDescriptor]:
    """Load descriptors from ``package.module:attribute``.

    The attribute may be an iterable of descriptors or a callable returning one.
    """

    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got '{target}'")

    module = importlib.import_module(module_name)
    try:
        obj = getattr(module, attribute)
    except AttributeError as e:
        raise ValueError(f"Module '{module_name}' has no attribute '{attribute}'") from e

    if callable(obj) and not isinstance(obj, SubscriptionDescriptor):
        obj = obj()

    descriptors = list(obj)
    for descriptor in descriptors:
        if not isinstance(descriptor, SubscriptionDescriptor):
            raise TypeError(f"'{target}' yielded a non-descriptor value: {descriptor!r}")
    return descriptors


def build_client(settings: WorkerSettings) -> ExternalTaskClient:
    return ExternalTaskClient(
        base_url=settings.base_url,
        worker_id=settings.worker_id,
        async_response_timeout=settings.async_response_timeout,
        max_tasks=settings.max_tasks,
        worker_threads=settings.worker_threads,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="camunda-flow",
        description="Serve external tasks with declared Python handlers",
    )
    parser.add_argument("--version", action="version", version=f"camunda-flow {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Register subscriptions and serve tasks")
    run.add_argument(
        "--handlers",
        required=True,
        help="Descriptors to serve, as 'package.module:attribute'",
    )

    subparsers.add_parser("probe", help="Check whether the engine is reachable")

    return parser


def _run(args: argparse.Namespace, settings: WorkerSettings) -> int:
    try:
        descriptors = load_descriptors(args.handlers)
    except (ImportError, ValueError, TypeError) as e:
        logger.error("Cannot load handlers: %s", e)
        return 2

    client = build_client(settings)
    dispatcher = Dispatcher(client, descriptors, settings)
    bootstrap = Bootstrap(client, dispatcher, retry_interval=settings.bootstrap_retry_seconds)
    stop = threading.Event()
    try:
        if bootstrap.run(stop):
            logger.info("Serving %d subscription(s)", len(descriptors))
            stop.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        stop.set()
        dispatcher.close()
        client.close()
    return 0


def _probe(settings: WorkerSettings) -> int:
    client = build_client(settings)
    try:
        reachable = client.probe_reachable()
    finally:
        client.close()
    print(f"{settings.base_url}: {'reachable' if reachable else 'unreachable'}")
    return 0 if reachable else 1


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkerSettings()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "run":
        return _run(args, settings)
    if args.command == "probe":
        return _probe(settings)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
