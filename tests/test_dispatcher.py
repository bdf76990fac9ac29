"""Tests for the event dispatcher."""

from filesentry.config import Channel
from filesentry.dispatcher import EventDispatcher, relative_to_root
from filesentry.events import EventType, FileEvent
from filesentry.notifications.queue import NotificationQueue
from filesentry.rules.engine import RulesEngine
from filesentry.rules.models import MatchRecord, Predicate, PredicateEventType, Rule


class FakeRecorder:
    def __init__(self, on_record=None):
        self.records: list[MatchRecord] = []
        self._on_record = on_record

    def record(self, match: MatchRecord) -> bool:
        self.records.append(match)
        if self._on_record:
            self._on_record(match)
        return True


class FakeFailureSink:
    def __init__(self):
        self.failures: list[dict] = []

    def record_failure(self, error_message, stack="", timestamp=None, rule_id=None):
        self.failures.append(
            {"error_message": error_message, "stack": stack, "rule_id": rule_id}
        )
        return True


class NullRouter:
    async def send(self, channel, notification):
        pass

    async def close(self):
        pass


def _rule(
    id: str,
    path_pattern: str = "**/*.ts",
    content_pattern: str | None = None,
    event_type: str = "any",
    negation: bool = False,
    text: str | None = None,
) -> Rule:
    return Rule(
        id=id,
        natural_language=text or f"rule {id}",
        predicate=Predicate(
            path_pattern=path_pattern,
            content_pattern=content_pattern,
            event_type=PredicateEventType(event_type),
            negation=negation,
        ),
    )


def _setup(tmp_path, rules, channels=(Channel.STDOUT, Channel.DESKTOP), on_record=None):
    engine = RulesEngine(rules)
    recorder = FakeRecorder(on_record)
    failures = FakeFailureSink()
    queue = NotificationQueue(NullRouter())
    dispatcher = EventDispatcher(
        engine, recorder, failures, queue, root=tmp_path, channels=channels
    )
    return dispatcher, engine, recorder, failures, queue


def _event(tmp_path, rel: str, content: str | None = None, type: str = "update") -> FileEvent:
    return FileEvent(type=EventType(type), path=str(tmp_path / rel), content=content)


class TestHandle:
    def test_match_records_and_queues(self, tmp_path):
        rule = _rule("r1", content_pattern="import axios", text="axios imported")
        dispatcher, _, recorder, failures, queue = _setup(tmp_path, [rule])
        event = _event(tmp_path, "src/api.ts", 'import axios from "axios";')

        matches = dispatcher.handle(event)

        assert len(matches) == 1
        assert recorder.records[0].rule_id == "r1"
        assert recorder.records[0].file_path == event.path
        assert recorder.records[0].detail == "Matched rule: axios imported"
        assert failures.failures == []

        (notification,) = queue.pending()
        assert notification.rule_id == "r1"
        assert notification.file_path == event.path
        assert notification.title == "FileSentry Alert"
        assert notification.message == "Rule triggered: axios imported\nFile: src/api.ts"
        assert notification.channels == {Channel.STDOUT, Channel.DESKTOP}

    def test_no_match_does_nothing(self, tmp_path):
        rule = _rule("r1", content_pattern="import axios")
        dispatcher, _, recorder, _, queue = _setup(tmp_path, [rule])
        dispatcher.handle(_event(tmp_path, "src/api.ts", "import fs"))
        assert recorder.records == []
        assert queue.size() == 0

    def test_path_is_relative_to_root(self, tmp_path):
        rule = _rule("r1", path_pattern="src/*.ts")
        dispatcher, _, recorder, _, _ = _setup(tmp_path, [rule])
        dispatcher.handle(_event(tmp_path, "src/a.ts"))
        dispatcher.handle(_event(tmp_path, "other/src/a.ts"))
        assert len(recorder.records) == 1

    def test_webhook_channel_added(self, tmp_path):
        channels = (Channel.STDOUT, Channel.DESKTOP, Channel.WEBHOOK)
        dispatcher, _, _, _, queue = _setup(tmp_path, [_rule("r1")], channels=channels)
        dispatcher.handle(_event(tmp_path, "a.ts"))
        assert queue.pending()[0].channels == set(channels)

    def test_rules_in_insertion_order(self, tmp_path):
        rules = [_rule("r3"), _rule("r1"), _rule("r2")]
        dispatcher, _, _, _, queue = _setup(tmp_path, rules)
        dispatcher.handle(_event(tmp_path, "a.ts"))
        assert [n.rule_id for n in queue.pending()] == ["r3", "r1", "r2"]

    def test_bad_rule_does_not_block_others(self, tmp_path):
        rules = [
            _rule("good1"),
            _rule("broken", content_pattern="/(unclosed/"),
            _rule("good2"),
        ]
        dispatcher, _, recorder, failures, queue = _setup(tmp_path, rules)

        dispatcher.handle(_event(tmp_path, "a.ts", "content"))

        assert [r.rule_id for r in recorder.records] == ["good1", "good2"]
        assert queue.size() == 2
        (failure,) = failures.failures
        assert failure["rule_id"] == "broken"
        assert "(unclosed" in failure["error_message"]
        assert "EvaluationError" in failure["stack"]

    def test_recorder_exception_is_contained(self, tmp_path):
        def explode(match):
            if match.rule_id == "r1":
                raise RuntimeError("disk on fire")

        dispatcher, _, recorder, failures, _ = _setup(
            tmp_path, [_rule("r1"), _rule("r2")], on_record=explode
        )
        dispatcher.handle(_event(tmp_path, "a.ts"))
        assert [r.rule_id for r in recorder.records] == ["r1", "r2"]
        assert failures.failures[0]["error_message"] == "disk on fire"

    def test_snapshot_per_event(self, tmp_path):
        """Reloading mid-event does not change the rules for that event."""
        rules = [_rule("r1"), _rule("r2")]
        holder = {}

        def remove_r2(match):
            holder["engine"].remove_rule("r2")

        dispatcher, engine, recorder, _, _ = _setup(tmp_path, rules, on_record=remove_r2)
        holder["engine"] = engine

        dispatcher.handle(_event(tmp_path, "a.ts"))
        assert [r.rule_id for r in recorder.records] == ["r1", "r2"]

        recorder.records.clear()
        dispatcher.handle(_event(tmp_path, "a.ts"))
        assert [r.rule_id for r in recorder.records] == ["r1"]

    def test_delete_event_with_content_rule(self, tmp_path):
        rules = [
            _rule("plain", content_pattern="x"),
            _rule("negated", content_pattern="x", negation=True),
        ]
        dispatcher, _, recorder, _, _ = _setup(tmp_path, rules)
        dispatcher.handle(_event(tmp_path, "a.ts", None, type="delete"))
        assert [r.rule_id for r in recorder.records] == ["negated"]


class TestRelativeToRoot:
    def test_inside_root(self, tmp_path):
        assert relative_to_root(str(tmp_path / "a" / "b.ts"), tmp_path) == "a/b.ts"

    def test_outside_root(self, tmp_path):
        rel = relative_to_root(str(tmp_path.parent / "x.ts"), tmp_path)
        assert rel == "../x.ts"

    def test_symlinked_root(self, tmp_path):
        real = tmp_path / "real"
        (real / "src").mkdir(parents=True)
        link = tmp_path / "link"
        link.symlink_to(real, target_is_directory=True)
        assert relative_to_root(str(real / "src" / "a.ts"), link) == "src/a.ts"
        assert relative_to_root(str(link / "src" / "a.ts"), real) == "src/a.ts"


class TestRootHandling:
    def test_symlinked_root_still_matches(self, tmp_path):
        real = tmp_path / "real"
        (real / "src").mkdir(parents=True)
        link = tmp_path / "link"
        link.symlink_to(real, target_is_directory=True)
        rule = _rule("r1", path_pattern="src/*.ts")
        dispatcher, _, recorder, _, _ = _setup(link, [rule])
        dispatcher.handle(_event(real, "src/a.ts"))
        assert [r.rule_id for r in recorder.records] == ["r1"]

    def test_globstar_does_not_escape_root(self, tmp_path):
        root = tmp_path / "project"
        root.mkdir()
        dispatcher, _, recorder, _, _ = _setup(root, [_rule("r1", path_pattern="**/*.ts")])
        dispatcher.handle(_event(tmp_path, "outside/a.ts"))
        dispatcher.handle(_event(root, "inside/a.ts"))
        assert [r.file_path for r in recorder.records] == [str(root / "inside" / "a.ts")]
