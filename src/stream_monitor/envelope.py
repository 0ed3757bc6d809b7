"""Decoding of message envelopes stored as stream entry fields.

Producers write three fields per entry: a message UUID, the payload as JSON
object text and the metadata as a JSON object of strings. The poison queue
middleware adds the topic, handler, subscriber and failure reason to the
metadata before moving a message to the DLQ.
"""

import json
import re
import uuid as uuid_lib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from stream_monitor.errors import EnvelopeCorrupt, InvalidIdentifier

UUID_KEY = "_watermill_message_uuid"
PAYLOAD_KEY = "payload"
METADATA_KEY = "metadata"

REASON_POISONED_KEY = "reason_poisoned"
TOPIC_POISONED_KEY = "topic_poisoned"
HANDLER_POISONED_KEY = "handler_poisoned"
SUBSCRIBER_POISONED_KEY = "subscriber_poisoned"

EMPTY_METADATA = "{}"

ENTRY_ID_PATTERN = re.compile(r"[0-9]+(-[0-9]+)?")


@dataclass
class Envelope:
    uuid: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, str] = field(default_factory=dict)


def is_entry_id(value: str) -> bool:
    """True for ``<millis>`` or ``<millis>-<seq>`` made of ASCII digits."""
    return ENTRY_ID_PATTERN.fullmatch(value) is not None


def parse_stream_timestamp(entry_id: str) -> datetime:
    """Return the arrival time embedded in a ``<millis>-<seq>`` entry id.

    Ids whose millisecond part is not plain ASCII digits, or lies outside the
    range ``datetime`` can represent, raise ``InvalidIdentifier``.
    """
    millis, sep, _ = entry_id.partition("-")
    if not sep or not (millis.isascii() and millis.isdigit()):
        raise InvalidIdentifier(entry_id)
    try:
        return datetime.fromtimestamp(int(millis) / 1000, tz=UTC)
    except (ValueError, OverflowError, OSError) as exc:
        raise InvalidIdentifier(entry_id) from exc


def decode_envelope(fields: dict[str, Any]) -> Envelope:
    """Decode the raw field map of a stream entry.

    Absent or empty payload and metadata decode to empty dicts. Fields that are
    present but not the expected JSON shape raise ``EnvelopeCorrupt``.
    """
    envelope = Envelope()

    message_uuid = fields.get(UUID_KEY)
    if isinstance(message_uuid, str):
        envelope.uuid = message_uuid

    payload = fields.get(PAYLOAD_KEY)
    if isinstance(payload, str) and payload:
        envelope.payload = _load_object(PAYLOAD_KEY, payload)

    metadata = fields.get(METADATA_KEY)
    if isinstance(metadata, str) and metadata and metadata != EMPTY_METADATA:
        decoded = _load_object(METADATA_KEY, metadata)
        for key, value in decoded.items():
            if not isinstance(value, str):
                raise EnvelopeCorrupt(
                    METADATA_KEY, f"value of {key!r} is not a string"
                )
        envelope.metadata = decoded

    return envelope


def encode_envelope(
    payload: dict[str, Any],
    metadata: dict[str, str] | None = None,
    message_uuid: str | None = None,
) -> dict[str, str]:
    """Build the field map for a new stream entry."""
    return {
        UUID_KEY: message_uuid or str(uuid_lib.uuid4()),
        PAYLOAD_KEY: json.dumps(payload),
        METADATA_KEY: json.dumps(metadata) if metadata else EMPTY_METADATA,
    }


def _load_object(name: str, text: str) -> dict[str, Any]:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise EnvelopeCorrupt(name, str(exc)) from exc
    if not isinstance(value, dict):
        raise EnvelopeCorrupt(name, f"expected a JSON object, got {type(value).__name__}")
    return value
