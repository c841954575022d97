"""Unit tests for :class:`~hostguard.schemas.status.StatusRecord` and
:class:`~hostguard.services.status_store.StatusStore`.

Coverage areas:

* Counter sanitisation on construction and on read.
* Verdict derivation from the infected count.
* ``load`` defaults for missing, corrupt and non-object files.
* ``save`` then ``load`` round trip and wholesale overwrite.
* Atomic write leaves no temporary files behind.
* Failed saves report ``False`` and keep the previous record.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from hostguard.schemas.status import NEVER, ScanVerdict, StatusRecord
from hostguard.services.status_store import StatusStore


# ---------------------------------------------------------------------------
# StatusRecord
# ---------------------------------------------------------------------------


class TestStatusRecord:
    def test_defaults(self) -> None:
        record = StatusRecord()
        assert record.last_scan_time == NEVER
        assert record.scan_verdict is ScanVerdict.CLEAN
        assert record.infected_count == 0
        assert record.scanned_count == 0
        assert record.pending_updates == 0
        assert record.has_scanned is False

    def test_verdict_is_attention_iff_infected(self) -> None:
        assert StatusRecord(infected_count=2).scan_verdict is ScanVerdict.ATTENTION
        assert StatusRecord(infected_count=0).scan_verdict is ScanVerdict.CLEAN

    def test_stored_verdict_is_overridden_by_counts(self) -> None:
        record = StatusRecord.model_validate(
            {"scan_status": "attention", "infected_files": "0"}
        )
        assert record.scan_verdict is ScanVerdict.CLEAN

    @pytest.mark.parametrize("bad", ["-4", "4\n", "four", "", None, -4, 1.5, True])
    def test_malformed_counters_collapse_to_zero(self, bad: object) -> None:
        record = StatusRecord(infected_count=bad, scanned_count=bad, pending_updates=bad)
        assert record.infected_count == 0
        assert record.scanned_count == 0
        assert record.pending_updates == 0

    def test_string_counters_from_legacy_writer_are_accepted(self) -> None:
        record = StatusRecord.model_validate(
            {
                "last_scan": "2026-10-19T02:00:04+00:00",
                "scan_status": "attention",
                "infected_files": "3",
                "scanned_files": "7654",
                "updates_available": "12",
            }
        )
        assert record.infected_count == 3
        assert record.scanned_count == 7654
        assert record.pending_updates == 12
        assert record.scan_verdict is ScanVerdict.ATTENTION

    def test_blank_timestamp_becomes_never(self) -> None:
        assert StatusRecord(last_scan_time="  ").last_scan_time == NEVER

    def test_json_dict_uses_on_disk_names(self) -> None:
        record = StatusRecord.from_counts(
            last_scan_time="2026-10-19T02:00:04+00:00",
            infected_count=0,
            scanned_count=7654,
            pending_updates=0,
        )
        assert record.to_json_dict() == {
            "last_scan": "2026-10-19T02:00:04+00:00",
            "scan_status": "clean",
            "infected_files": 0,
            "scanned_files": 7654,
            "updates_available": 0,
        }


# ---------------------------------------------------------------------------
# StatusStore
# ---------------------------------------------------------------------------


class TestStatusStoreLoad:
    def test_missing_file_loads_defaults(self, store: StatusStore) -> None:
        assert store.exists() is False
        assert store.read() is None
        assert store.load() == StatusRecord()

    def test_corrupt_file_loads_defaults(self, store: StatusStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.read() is None
        assert store.load() == StatusRecord()

    def test_non_object_json_loads_defaults(self, store: StatusStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[1, 2, 3]")
        assert store.read() is None

    def test_invalid_utf8_loads_defaults(self, store: StatusStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_bytes(b'{"last_scan": "\xff\xfe", "infected_files": 1}')
        assert store.read() is None
        assert store.load() == StatusRecord()

    def test_oversized_integer_loads_defaults(self, store: StatusStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text('{"infected_files": ' + "9" * 5000 + "}")
        assert store.read() is None
        assert store.load() == StatusRecord()

    def test_directory_in_place_of_file_loads_defaults(self, store: StatusStore) -> None:
        store.path.mkdir(parents=True)
        assert store.load() == StatusRecord()

    def test_malformed_counters_on_disk_are_sanitized(self, store: StatusStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(
            json.dumps(
                {
                    "last_scan": "2026-10-19T02:00:04+00:00",
                    "scan_status": "clean",
                    "infected_files": "0",
                    "scanned_files": "12\n13",
                    "updates_available": "-1",
                }
            )
        )
        record = store.load()
        assert record.scanned_count == 0
        assert record.pending_updates == 0


class TestStatusStoreSave:
    def test_round_trip(self, store: StatusStore) -> None:
        record = StatusRecord.from_counts(
            last_scan_time="2026-10-19T02:00:04+00:00",
            infected_count="3",
            scanned_count=7654,
            pending_updates="bogus",
        )
        assert store.save(record) is True
        loaded = store.load()
        assert loaded == record
        assert (loaded.infected_count, loaded.scanned_count, loaded.pending_updates) == (3, 7654, 0)

    def test_save_creates_parent_directory(self, tmp_path: Path) -> None:
        store = StatusStore(tmp_path / "a" / "b" / "status.json")
        assert store.save(StatusRecord()) is True
        assert store.exists()

    def test_save_overwrites_wholesale(self, store: StatusStore) -> None:
        store.save(StatusRecord(last_scan_time="t1", infected_count=5, scanned_count=10, pending_updates=2))
        store.save(StatusRecord(last_scan_time="t2", scanned_count=3))
        loaded = store.load()
        assert loaded.last_scan_time == "t2"
        assert loaded.infected_count == 0
        assert loaded.pending_updates == 0
        assert loaded.scan_verdict is ScanVerdict.CLEAN

    def test_save_leaves_no_temp_files(self, store: StatusStore) -> None:
        store.save(StatusRecord(scanned_count=1))
        store.save(StatusRecord(scanned_count=2))
        assert [p.name for p in store.path.parent.iterdir()] == ["status.json"]

    def test_written_file_is_plain_json(self, store: StatusStore) -> None:
        store.save(StatusRecord(last_scan_time="t", infected_count=1))
        payload = json.loads(store.path.read_text())
        assert payload["scan_status"] == "attention"
        assert payload["infected_files"] == 1

    def test_failed_save_returns_false_and_keeps_previous(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = StatusStore(blocker / "status.json")
        assert store.save(StatusRecord()) is False
        assert blocker.read_text() == "not a directory"
