import csv
import json

import pytest

from chainnet.reporting.metrics import CsvSink, JsonlSink
from chainnet.reporting.summary import compute_auc, summarise_history, write_summary


def test_history_summary_values():
    summary = summarise_history([3.0, 2.0, 1.0])
    assert summary["iterations"] == 3
    assert summary["loss"]["first"] == 3.0
    assert summary["loss"]["min"] == 1.0
    assert summary["loss"]["last"] == 1.0
    assert summary["loss"]["tail_auc"] == pytest.approx(4.0)
    assert summarise_history([])["iterations"] == 0
    assert compute_auc([]) == 0.0


def test_write_summary_is_stable(tmp_path):
    first = write_summary([1.0, 0.5], tmp_path / "a" / "summary.json")
    second = write_summary([1.0, 0.5], tmp_path / "b" / "summary.json")
    with open(first, "rb") as a, open(second, "rb") as b:
        assert a.read() == b.read()


def test_sinks_write_one_record_per_step(tmp_path):
    jsonl = JsonlSink(tmp_path / "metrics.jsonl", seed=4)
    table = CsvSink(tmp_path / "metrics.csv")
    for step, loss in enumerate([0.9, 0.4], start=1):
        jsonl.on_step(step, {"loss": loss})
        table.on_step(step, {"loss": loss})

    records = [json.loads(line) for line in (tmp_path / "metrics.jsonl").read_text().splitlines()]
    assert records == [
        {"step": 1, "seed": 4, "loss": 0.9},
        {"step": 2, "seed": 4, "loss": 0.4},
    ]
    with (tmp_path / "metrics.csv").open() as handle:
        rows = list(csv.DictReader(handle))
    assert [row["step"] for row in rows] == ["1", "2"]
