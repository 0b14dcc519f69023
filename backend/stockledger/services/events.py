# Overview: Post-commit notification hook for document create/update/delete and status changes.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from flask import current_app

"""
Hook contract:
- notify() is called only after the ledger transaction has committed.
- Listeners run synchronously in registration order.
- A failing listener is logged and skipped; it never changes the outcome of
  the operation that fired the event, and never stops later listeners.
"""


@dataclass(frozen=True)
class DocumentEvent:
    event_type: str          # e.g. "sale.created", "stock_transfer.status_changed"
    kind: str
    document_id: int
    payload: dict = field(default_factory=dict)


_listeners: list[Callable[[DocumentEvent], None]] = []


def register_listener(listener: Callable[[DocumentEvent], None]) -> Callable[[DocumentEvent], None]:
    """Register a listener; returns it so this can be used as a decorator."""
    if listener not in _listeners:
        _listeners.append(listener)
    return listener


def unregister_listener(listener) -> None:
    if listener in _listeners:
        _listeners.remove(listener)


def clear_listeners() -> None:
    _listeners.clear()


def notify(event: DocumentEvent) -> None:
    for listener in list(_listeners):
        try:
            listener(event)
        except Exception:
            current_app.logger.exception(
                "Listener %r failed for %s %s", listener, event.event_type, event.document_id
            )


def publish(event_type: str, kind: str, document_id: int, build_payload: Callable[[], dict]) -> None:
    """
    Build the payload and notify listeners, after commit.

    The payload is serialized here rather than by the caller so a failure
    while building it is logged like a listener failure.
    """
    if not _listeners:
        return
    try:
        payload = build_payload()
    except Exception:
        current_app.logger.exception("Could not build payload for %s %s", event_type, document_id)
        return
    notify(DocumentEvent(event_type, kind, document_id, payload))
