"""Unit tests for the side-channel metadata encoding."""

import json

from ticketing.models.cart import SideChannelRecord
from ticketing.services.side_channel import (
    COUNT_KEY,
    METADATA_VALUE_LIMIT,
    SIDE_CHANNEL_BUDGET,
    decode_side_channel,
    declared_record_count,
    encode_side_channel,
    serialize_side_channel,
)


def _records(count: int, sku: str = "PARISIENS_ADULT") -> list[SideChannelRecord]:
    return [SideChannelRecord(sku=sku, quantity=1 + i % 50, date="2026-07-14") for i in range(count)]


class TestSideChannelRecord:
    def test_compact_form_omits_missing_date(self):
        assert SideChannelRecord(sku="MOUCHES_ADULT", quantity=2).to_compact() == {"s": "MOUCHES_ADULT", "q": 2}

    def test_from_compact_rejects_unusable_entries(self):
        assert SideChannelRecord.from_compact({"s": "A", "q": 2, "d": "2026-07-14"}) == SideChannelRecord(
            sku="A", quantity=2, date="2026-07-14"
        )
        assert SideChannelRecord.from_compact({"q": 2}) is None
        assert SideChannelRecord.from_compact({"s": "A", "q": "2"}) is None
        assert SideChannelRecord.from_compact({"s": "A", "q": True}) is None
        assert SideChannelRecord.from_compact({"s": "A", "q": 0}) is None
        assert SideChannelRecord.from_compact(["A", 2]) is None


class TestEncode:
    def test_small_cart_fits_in_one_chunk(self):
        records = _records(3)

        metadata, kept = encode_side_channel(records)

        assert kept == 3
        assert set(metadata) == {"cart_0", COUNT_KEY}
        assert metadata[COUNT_KEY] == "3"
        assert json.loads(metadata["cart_0"])[0] == {"s": "PARISIENS_ADULT", "q": 1, "d": "2026-07-14"}

    def test_large_cart_truncated_within_budget(self):
        records = _records(200)

        metadata, kept = encode_side_channel(records)

        chunks = [value for key, value in metadata.items() if key != COUNT_KEY]
        assert 0 < kept < 200
        assert metadata[COUNT_KEY] == "200"
        assert all(len(chunk) <= METADATA_VALUE_LIMIT for chunk in chunks)
        assert sum(len(chunk) for chunk in chunks) <= SIDE_CHANNEL_BUDGET
        # Truncation drops from the end: what survives is a prefix
        assert decode_side_channel(metadata) == records[:kept]

    def test_serialize_keeps_leading_records_only(self):
        records = _records(10)

        text, kept = serialize_side_channel(records, budget=100)

        assert len(text) <= 100
        assert json.loads(text) == [r.to_compact() for r in records[:kept]]

    def test_empty_record_list(self):
        metadata, kept = encode_side_channel([])

        assert kept == 0
        assert decode_side_channel(metadata) == []
        assert declared_record_count(metadata) == 0


class TestDecode:
    def test_roundtrip_preserves_order(self):
        records = [
            SideChannelRecord(sku="MOUCHES_ADULT", quantity=2, date="2026-07-14"),
            SideChannelRecord(sku="PARISIENS_CHILD", quantity=1),
            SideChannelRecord(sku="MOUCHES_ADULT", quantity=3, date="2026-07-15"),
        ]
        metadata, _ = encode_side_channel(records)

        assert decode_side_channel(metadata) == records

    def test_missing_metadata(self):
        assert decode_side_channel(None) == []
        assert decode_side_channel({}) == []
        assert decode_side_channel({"source": "homepage"}) == []

    def test_malformed_json_yields_empty(self):
        assert decode_side_channel({"cart_0": '[{"s":"MOUCHES_ADULT"'}) == []
        assert decode_side_channel({"cart_0": '{"s":"MOUCHES_ADULT","q":1}'}) == []

    def test_bad_entries_skipped(self):
        metadata = {"cart_0": '[{"s":"A","q":1},{"q":2},{"s":"B","q":99},{"s":"C","q":3}]'}

        assert [r.sku for r in decode_side_channel(metadata)] == ["A", "C"]

    def test_gap_in_chunks_stops_reassembly(self):
        metadata, _ = encode_side_channel(_records(100))
        del metadata["cart_1"]

        assert decode_side_channel(metadata) == []


class TestDeclaredRecordCount:
    def test_values(self):
        assert declared_record_count({COUNT_KEY: "12"}) == 12
        assert declared_record_count({COUNT_KEY: "many"}) is None
        assert declared_record_count({}) is None
        assert declared_record_count(None) is None
