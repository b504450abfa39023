"""Unit tests for identifier normalization and progress lookup."""

from datetime import datetime, timezone

from planscope.core.identifiers import (
    ProgressIndex,
    lookup_variant,
    match_record,
    normalize,
    record_keys,
    same_identifier,
    short_id,
)
from planscope.core.types import InfraProgressRecord, Node, Progress, ProgressStatus


def record(resource_id, instance_id="inst", started=None, status="running"):
    return InfraProgressRecord(
        resource_id=resource_id,
        instance_id=instance_id,
        status=status,
        started_at=started,
    )


class TestNormalize:
    def test_strips_case_and_punctuation(self):
        assert normalize("R-Network_Main") == "rnetworkmain"
        assert normalize(" api.v1 url ") == "apiv1url"

    def test_record_keys_order_and_dedup(self):
        assert record_keys("R-Net") == ["rnet", "R-Net", "tf-rnet", "tf-r-net"]
        assert record_keys("net") == ["net", "tf-net"]

    def test_lookup_variant(self):
        table = {"tf-rnet": "prefixed", "other": "x"}
        assert lookup_variant("R-Net", table) == "prefixed"
        assert lookup_variant("missing", table) is None

    def test_lookup_variant_prefers_normalized(self):
        table = {"rnet": "normalized", "R-Net": "raw"}
        assert lookup_variant("R-Net", table) == "normalized"

    def test_same_identifier(self):
        assert same_identifier("ABC", "abc ")
        assert not same_identifier("", "")
        assert not same_identifier("abc", "abd")

    def test_short_id(self):
        assert short_id("abc") == "abc"
        assert short_id("0123456789") == "01234567…"


class TestMatchRecord:
    def test_latest_start_wins(self):
        early = record("Net", started=datetime(2024, 1, 1, tzinfo=timezone.utc))
        late = record("net", started=datetime(2024, 1, 2, tzinfo=timezone.utc))
        assert match_record("NET", "INST", [early, late]) is late

    def test_other_instance_ignored(self):
        assert match_record("net", "inst", [record("net", instance_id="other")]) is None

    def test_undated_records_lose(self):
        undated = record("net")
        dated = record("net", started=datetime(2020, 5, 1, tzinfo=timezone.utc))
        assert match_record("net", "inst", [dated, undated]) is dated


class TestProgressIndex:
    def test_lookup_precedence(self):
        index = ProgressIndex()
        by_name = Progress(percent=10)
        by_key = Progress(percent=20)
        by_id = Progress(percent=30)
        index.put(by_name, name="Network")
        index.put(by_key, key="net")
        node = Node(id="r1", key="net", name="Network")
        assert index.lookup(node) is by_key
        index.put(by_id, id="r1")
        assert index.lookup(node) is by_id

    def test_merge_overwrites(self):
        base = ProgressIndex()
        base.put(Progress(percent=10), id="a", key="ka")
        overlay = ProgressIndex()
        overlay.put(Progress(percent=90), id="a")
        base.merge(overlay)
        assert base.lookup(Node(id="a", key="ka")).percent == 90

    def test_any_in_flight(self):
        index = ProgressIndex()
        done = Node(id="done")
        busy = Node(id="busy")
        index.put_node(done, Progress(percent=100, status=ProgressStatus.COMPLETED))
        assert not index.any_in_flight([done, Node(id="unknown")])
        index.put_node(busy, Progress(percent=40, status=ProgressStatus.RUNNING))
        assert index.any_in_flight([done, busy])

    def test_failed_midway_is_in_flight(self):
        index = ProgressIndex()
        node = Node(id="a")
        index.put_node(node, Progress(percent=50, status=ProgressStatus.FAILED))
        assert index.any_in_flight([node])
