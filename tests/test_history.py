"""Tests for match/failure history and the recorder sinks."""

from datetime import datetime, timedelta

from filesentry.exceptions import StorageError
from filesentry.history import FailureSink, HistoryStore, MatchRecorder
from filesentry.rules.models import MatchRecord


def _match(rule_id: str = "r1", path: str = "/p/a.ts") -> MatchRecord:
    return MatchRecord(rule_id=rule_id, file_path=path, detail=f"Matched rule: {rule_id}")


class BrokenStore:
    def append_match(self, record):
        raise StorageError("read-only filesystem")

    def append_failure(self, record):
        raise StorageError("read-only filesystem")


class TestHistoryStore:
    def test_empty(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        assert store.recent_matches() == []
        assert store.recent_failures() == []

    def test_matches_newest_first(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        for i in range(5):
            store.append_match(_match(f"r{i}"))
        recent = store.recent_matches(3)
        assert [m.rule_id for m in recent] == ["r4", "r3", "r2"]

    def test_append_only_file(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        store.append_match(_match("r1"))
        store.append_match(_match("r1"))
        lines = (tmp_path / "matches.jsonl").read_text().splitlines()
        assert len(lines) == 2

    def test_timestamp_survives(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        ts = datetime(2024, 5, 1, 12, 30)
        store.append_match(MatchRecord(rule_id="r1", file_path="x", detail="d", timestamp=ts))
        assert store.recent_matches()[0].timestamp == ts

    def test_skips_garbage_lines(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        store.append_match(_match("r1"))
        with (tmp_path / "matches.jsonl").open("a") as f:
            f.write("not json\n\n")
        store.append_match(_match("r2"))
        assert [m.rule_id for m in store.recent_matches()] == ["r2", "r1"]

    def test_creates_data_dir(self, tmp_path):
        store = HistoryStore(str(tmp_path / "nested" / "data"))
        store.append_match(_match())
        assert (tmp_path / "nested" / "data" / "matches.jsonl").exists()


class TestMatchRecorder:
    def test_record(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        assert MatchRecorder(store).record(_match("r9")) is True
        assert store.recent_matches()[0].rule_id == "r9"

    def test_storage_failure_is_logged_not_raised(self, caplog):
        recorder = MatchRecorder(BrokenStore())
        assert recorder.record(_match()) is False
        assert "Failed to record match" in caplog.text


class TestFailureSink:
    def test_record_failure(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        sink = FailureSink(store)
        ts = datetime.now() - timedelta(minutes=5)
        assert sink.record_failure("bad regex", "Traceback ...", ts, rule_id="r1")
        (failure,) = store.recent_failures()
        assert failure.error_message == "bad regex"
        assert failure.stack == "Traceback ..."
        assert failure.rule_id == "r1"
        assert failure.timestamp == ts

    def test_default_timestamp(self, tmp_path):
        store = HistoryStore(str(tmp_path))
        FailureSink(store).record_failure("oops")
        assert store.recent_failures()[0].timestamp <= datetime.now()

    def test_storage_failure_is_logged_not_raised(self, caplog):
        assert FailureSink(BrokenStore()).record_failure("x") is False
        assert "Failed to record failure" in caplog.text
