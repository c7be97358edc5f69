"""Tests for source adapters and envelope unwrapping."""

import json
from pathlib import Path

import pytest

from finflow_ingestion.adapters import (
    CsvSourceAdapter,
    JsonSourceAdapter,
    SourceAdapter,
    adapter_for_path,
    unwrap_payloads,
)
from finflow_ingestion.domain.types import ProcessingStatus, SourceChannel


def _write(tmp_path: Path, name: str, text: str) -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8", newline="")
    return path


class TestUnwrapPayloads:
    def test_list(self):
        assert list(unwrap_payloads([{"a": 1}, {"a": 2}])) == [{"a": 1}, {"a": 2}]

    @pytest.mark.parametrize("key", ["transactions", "data", "records"])
    def test_envelope(self, key):
        assert list(unwrap_payloads({key: [{"a": 1}], "meta": {}})) == [{"a": 1}]

    def test_envelope_key_priority(self):
        document = {"data": [{"from": "data"}], "transactions": [{"from": "transactions"}]}
        assert list(unwrap_payloads(document)) == [{"from": "transactions"}]

    def test_single_object(self):
        assert list(unwrap_payloads({"amount": 5})) == [{"amount": 5}]

    def test_envelope_key_not_a_list_is_a_payload(self):
        document = {"data": "x", "amount": 5}
        assert list(unwrap_payloads(document)) == [document]

    def test_non_object_items_are_kept(self):
        assert list(unwrap_payloads([{"a": 1}, 42, None])) == [{"a": 1}, 42, None]


class TestCsvSourceAdapter:
    def test_read_trims_and_drops_empty_cells(self, tmp_path):
        path = _write(tmp_path, "t.csv", "amount , currency,note\n 100.00 ,USD,\n")
        rows = list(CsvSourceAdapter().read(path, {}))
        assert rows == [{"amount": "100.00", "currency": "USD"}]

    def test_bom_stripped(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes("\ufeffamount,currency\n1,EGP\n".encode("utf-8"))
        assert list(CsvSourceAdapter().read(path, {})) == [{"amount": "1", "currency": "EGP"}]

    def test_blank_rows_skipped(self, tmp_path):
        path = _write(tmp_path, "t.csv", "a,b\n1,2\n,\n3,4\n")
        assert list(CsvSourceAdapter().read(path, {})) == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]

    def test_skip_rows(self, tmp_path):
        path = _write(tmp_path, "t.csv", "exported by shop\n# v2\nh1,h2\n1,2\n")
        assert list(CsvSourceAdapter().read(path, {"skip_rows": 2})) == [{"h1": "1", "h2": "2"}]

    def test_custom_delimiter(self, tmp_path):
        path = _write(tmp_path, "t.csv", "a;b;c\n1;2;3\n")
        assert list(CsvSourceAdapter().read(path, {"delimiter": ";"})) == [{"a": "1", "b": "2", "c": "3"}]

    def test_quoted_thousands(self, tmp_path):
        path = _write(tmp_path, "t.csv", 'amount,currency\n"1,250.50",USD\n')
        assert list(CsvSourceAdapter().read(path, {})) == [{"amount": "1,250.50", "currency": "USD"}]

    def test_surplus_cells_ignored(self, tmp_path):
        path = _write(tmp_path, "t.csv", "a,b\n1,2,3\n")
        assert list(CsvSourceAdapter().read(path, {})) == [{"a": "1", "b": "2"}]


class TestJsonSourceAdapter:
    def test_list_document(self, tmp_path):
        path = _write(tmp_path, "t.json", json.dumps([{"a": 1}, {"a": 2}]))
        assert list(JsonSourceAdapter().read(path, {})) == [{"a": 1}, {"a": 2}]

    def test_envelope_document(self, tmp_path):
        path = _write(tmp_path, "t.json", json.dumps({"transactions": [{"a": 1}]}))
        assert list(JsonSourceAdapter().read(path, {})) == [{"a": 1}]

    def test_json_lines_by_suffix(self, tmp_path):
        path = _write(tmp_path, "t.jsonl", '{"a": 1}\n\n{"a": 2}\n')
        assert list(JsonSourceAdapter().read(path, {})) == [{"a": 1}, {"a": 2}]

    def test_json_lines_by_option(self, tmp_path):
        path = _write(tmp_path, "t.txt", '{"a": 1}\n')
        assert list(JsonSourceAdapter().read(path, {"format": "jsonl"})) == [{"a": 1}]

    def test_json_path(self, tmp_path):
        path = _write(tmp_path, "t.json", json.dumps({"result": {"items": [{"a": 1}]}}))
        assert list(JsonSourceAdapter().read(path, {"json_path": "result.items"})) == [{"a": 1}]

    def test_missing_json_path_yields_nothing(self, tmp_path):
        path = _write(tmp_path, "t.json", json.dumps({"result": {}}))
        assert list(JsonSourceAdapter().read(path, {"json_path": "result.items"})) == []

    def test_keys_kept_as_delivered(self, tmp_path):
        path = _write(tmp_path, "t.json", json.dumps([{"createdAt": "2026-01-15"}]))
        assert list(JsonSourceAdapter().read(path, {})) == [{"createdAt": "2026-01-15"}]


class TestAdapterForPath:
    @pytest.mark.parametrize(
        "name, expected",
        [("x.json", JsonSourceAdapter), ("x.JSONL", JsonSourceAdapter), ("x.ndjson", JsonSourceAdapter), ("x.csv", CsvSourceAdapter)],
    )
    def test_by_suffix(self, name, expected):
        adapter = adapter_for_path(Path(name))
        assert isinstance(adapter, expected)
        assert isinstance(adapter, SourceAdapter)

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported file type"):
            adapter_for_path(Path("x.xlsx"))


class TestIngestFile:
    def test_csv_upload(self, service, event_store, tmp_path):
        path = _write(
            tmp_path,
            "orders.csv",
            "order_id,amount,currency,created_at,platform,type\n"
            "1001,100.00,USD,2026-01-15T10:00:00Z,shopify,sale\n"
            "1002,-20.00,EGP,2026-01-15T11:00:00Z,shopify,refund\n"
            "1001,100.00,USD,2026-01-15T10:00:00Z,shopify,sale\n"
            "1003,abc,USD,2026-01-15T12:00:00Z,shopify,sale\n",
        )
        report = service.ingest_file(path, "shopify-export")

        assert [r.status for r in report.results] == [
            ProcessingStatus.PROCESSED,
            ProcessingStatus.PROCESSED,
            ProcessingStatus.IGNORED,
            ProcessingStatus.FAILED,
        ]
        raw = event_store.get_raw_event(report.results[0].event_id)
        assert raw.channel is SourceChannel.FILE
        assert raw.payload["order_id"] == "1001"

    def test_jsonl_upload(self, service, tmp_path, make_payload):
        lines = [json.dumps(make_payload(external_id=str(i))) for i in range(3)]
        path = _write(tmp_path, "events.jsonl", "\n".join(lines) + "\n")
        report = service.ingest_file(path, "stripe")
        assert report.processed == 3

    def test_unsupported_file(self, service, tmp_path):
        path = _write(tmp_path, "sheet.xlsx", "")
        with pytest.raises(ValueError):
            service.ingest_file(path, "manual")
