"""Reading the node's event bus and printing events to a console."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, TextIO

log = logging.getLogger(__name__)

ALL_EVENTS = "BUS_EVENT_TYPE_ALL"
RECONNECT_DELAY = 5.0
LOG_FORMATS = ("raw", "text", "json")

Event = Mapping[str, Any]


def resolve_event_types(types: Iterable[str] | None, known_types: Mapping[str, int]) -> list[int]:
    """Turn event type names or numbers into event type values.

    An empty list, or one that names the catch-all type, means every event.
    Unknown names raise ``ValueError``.
    """
    types = list(types or [])
    if not types:
        if ALL_EVENTS not in known_types:
            raise ValueError(f"no such event {ALL_EVENTS}")
        return [known_types[ALL_EVENTS]]

    names_by_value = {value: name for name, value in known_types.items()}
    seen: set[str] = set()
    resolved: list[int] = []
    for name in types:
        if name.isdigit() and int(name) > 0 and int(name) in names_by_value:
            name = names_by_value[int(name)]
        if name in seen:
            continue
        seen.add(name)
        if name not in known_types:
            raise ValueError(f"no such event {name}")
        if name == ALL_EVENTS:
            return resolve_event_types(None, known_types)
        resolved.append(known_types[name])
    if not resolved:
        return resolve_event_types(None, known_types)
    return resolved


def _rfc3339_nano(now: datetime) -> str:
    text = now.strftime("%Y-%m-%dT%H:%M:%S")
    fraction = f"{now.microsecond:06d}".rstrip("0")
    return f"{text}.{fraction}Z" if fraction else f"{text}Z"


def make_console_logger(log_format: str, out: TextIO) -> Callable[[Event], None]:
    """A handler that writes each event to ``out`` in the chosen format."""
    if log_format == "raw":
        def print_event(text: str) -> None:
            out.write(f"{text}\n")
    elif log_format == "text":
        def print_event(text: str) -> None:
            out.write(f"{_rfc3339_nano(datetime.now(timezone.utc))};{text}")
    elif log_format == "json":
        def print_event(text: str) -> None:
            stamp = _rfc3339_nano(datetime.now(timezone.utc))
            out.write(f'{{"time":"{stamp}",{text[1:]}\n')
    else:
        raise ValueError(
            f'error: unknown log-format: "{log_format}". Allowed values: raw, text, json'
        )

    def handle_event(event: Event) -> None:
        try:
            text = json.dumps(event, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            log.error("unable to marshal event err=%s", exc)
            text = ""
        print_event(text)

    return handle_event


def _consume(stream: Any, handle_event: Callable[[Event], None], batch_size: int) -> bool:
    """Pass every event on; False if the next batch could not be requested."""
    poll = {"batchSize": batch_size}
    responses = iter(stream)
    try:
        while True:
            try:
                response = next(responses)
            except StopIteration:
                log.info("stream closed by server")
                return True
            except Exception as exc:  # the transport's error types are not known here
                log.info("stream closed err=%s", exc)
                return True
            for event in response.get("events") or []:
                handle_event(event)
            if batch_size > 0:
                try:
                    stream.send(poll)
                except Exception as exc:
                    log.error("failed to poll next event batch err=%s", exc)
                    return False
    finally:
        stream.close()


def read_events(
    connect: Callable[[], Any],
    handle_event: Callable[[Event], None],
    stop_event: threading.Event,
    batch_size: int,
    reconnect: bool,
) -> threading.Thread:
    """Connect and hand every event to ``handle_event`` on a background thread.

    ``connect`` opens a stream: an iterable of responses holding ``events``,
    with ``send`` to request the next batch and ``close``. The first connection
    is made before returning; ``stop_event`` is set when reading ends.
    """
    try:
        stream = connect()
    except Exception as exc:
        raise ConnectionError(f"failed to connect to event stream: {exc}") from exc

    def worker() -> None:
        current = stream
        try:
            while True:
                if not _consume(current, handle_event, batch_size) or not reconnect:
                    return
                while True:
                    if stop_event.wait(RECONNECT_DELAY):
                        return
                    log.info("Attempting to reconnect to the node")
                    try:
                        current = connect()
                        break
                    except Exception as exc:
                        log.error("reconnect failed: %s", exc)
        finally:
            stop_event.set()

    thread = threading.Thread(target=worker, name="event-reader", daemon=True)
    thread.start()
    return thread