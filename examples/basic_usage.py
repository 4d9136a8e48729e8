#!/usr/bin/env python3
"""Serve a `quote.create` topic with a plain Python function.

Run with the engine URL in `.env` (CAMUNDA_BASE_URL=...)::

    PYTHONPATH=. camunda-flow run --handlers examples.basic_usage:SUBSCRIPTIONS

or directly with ``python examples/basic_usage.py``.
"""

from __future__ import annotations

import threading

from pydantic import BaseModel

from camunda_flow import (
    ArgumentParsingType,
    ArgumentSpec,
    Bootstrap,
    Dispatcher,
    SubscriptionDescriptor,
    WorkerSettings,
)
from camunda_flow.logging import configure_logging
from camunda_flow.main import build_client


class Quote(BaseModel):
    id: int
    supplier_reference: str | None = None
    build_cost: int = 0


def create_quote(quote: Quote, requested_by: int) -> Quote:
    return quote.model_copy(update={"build_cost": quote.build_cost + requested_by})


def quote_summary(payload: dict) -> dict:
    return {"id": payload["id"], "number": f"Q-{payload['id']:06d}"}


SUBSCRIPTIONS = [
    SubscriptionDescriptor(
        topic="quote.create",
        handler=create_quote,
        arguments=(
            ArgumentSpec("payload", ArgumentParsingType.STRING_TO_POJO, Quote),
            ArgumentSpec("requestedBy"),
        ),
        qualifier="status!=2,3",
        result="result",
    ),
    SubscriptionDescriptor(
        topic="quote.number",
        handler=quote_summary,
        arguments=("payload:string->pojo",),
        result="quoteNumber",
        return_value_property="number",
    ),
]


def main() -> int:
    settings = WorkerSettings()
    configure_logging(settings.log_level)

    client = build_client(settings)
    dispatcher = Dispatcher(client, SUBSCRIPTIONS, settings)
    bootstrap = Bootstrap(client, dispatcher, retry_interval=settings.bootstrap_retry_seconds)
    bootstrap.start()

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        bootstrap.stop(timeout=1.0)
        client.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
