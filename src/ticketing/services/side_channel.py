"""Side-channel encoding in Stripe session metadata.

Stripe keys a session's line items by price, which loses each cart entry's
SKU and travel date, so those ride along in the session's metadata. Stripe
caps each metadata value at 500 characters, so the JSON document is split
across ``cart_0``, ``cart_1``, ... keys inside a fixed overall budget.
Records that do not fit are dropped from the end; ``cart_count`` keeps the
original record count so the webhook side can tell truncation happened.
"""

import json
from collections.abc import Mapping, Sequence
from typing import Any

from ticketing.models.cart import SideChannelRecord
from ticketing.utils.logging import get_logger

logger = get_logger(__name__)

METADATA_VALUE_LIMIT = 500
SIDE_CHANNEL_BUDGET = 4500
CHUNK_PREFIX = "cart_"
COUNT_KEY = "cart_count"


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=True)


def serialize_side_channel(
    records: Sequence[SideChannelRecord],
    budget: int = SIDE_CHANNEL_BUDGET,
) -> tuple[str, int]:
    """Serialize as many leading records as fit in ``budget`` characters.

    Returns:
        Tuple of (JSON array text, number of records kept).
    """
    pieces: list[str] = []
    length = 2  # brackets
    for record in records:
        piece = _dumps(record.to_compact())
        added = len(piece) + (1 if pieces else 0)
        if length + added > budget:
            break
        pieces.append(piece)
        length += added
    return "[" + ",".join(pieces) + "]", len(pieces)


def encode_side_channel(
    records: Sequence[SideChannelRecord],
    budget: int = SIDE_CHANNEL_BUDGET,
) -> tuple[dict[str, str], int]:
    """Build the metadata entries carrying ``records``.

    Returns:
        Tuple of (metadata entries, number of records kept).
    """
    text, kept = serialize_side_channel(records, budget)
    if kept < len(records):
        logger.warning(
            "Side channel truncated to fit metadata: kept %d of %d records",
            kept,
            len(records),
        )

    metadata = {
        f"{CHUNK_PREFIX}{index}": text[offset : offset + METADATA_VALUE_LIMIT]
        for index, offset in enumerate(range(0, len(text), METADATA_VALUE_LIMIT))
    }
    metadata[COUNT_KEY] = str(len(records))
    return metadata, kept


def decode_side_channel(metadata: Mapping[str, Any] | None) -> list[SideChannelRecord]:
    """Reassemble side-channel records from session metadata.

    Missing or malformed data yields an empty list; individual unusable
    entries are skipped.
    """
    if not metadata:
        return []

    chunks: list[str] = []
    index = 0
    while True:
        chunk = metadata.get(f"{CHUNK_PREFIX}{index}")
        if not isinstance(chunk, str):
            break
        chunks.append(chunk)
        index += 1

    if not chunks:
        return []

    try:
        data = json.loads("".join(chunks))
    except ValueError:
        logger.warning("Side channel metadata is not valid JSON; continuing without it")
        return []

    if not isinstance(data, list):
        logger.warning("Side channel metadata is not a list; continuing without it")
        return []

    records = [SideChannelRecord.from_compact(entry) for entry in data]
    return [record for record in records if record is not None]


def declared_record_count(metadata: Mapping[str, Any] | None) -> int | None:
    """Record count written at checkout time, if present and numeric."""
    if not metadata:
        return None
    raw = metadata.get(COUNT_KEY)
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
