import csv
import json
from pathlib import Path

import numpy as np
import pytest

from acr_core.interfaces import DanglingViolation, DPOReport
from acr_pipeline.logging_utils import (
    CSVLogger,
    ExperimentLogger,
    JSONLLogger,
    JsonIO,
    make_run_dir,
    read_jsonl,
    to_jsonable,
)


def test_csv_writes_header_once(tmp_path):
    csv_path = tmp_path / "steps.csv"
    fieldnames = ["step", "status"]

    logger1 = CSVLogger(csv_path, fieldnames=fieldnames)
    logger1.write_row({"step": 0, "status": "applied"})
    logger1.close()

    logger2 = CSVLogger(csv_path, fieldnames=fieldnames)
    logger2.write_row({"step": 1, "status": "inapplicable"})
    logger2.close()

    with csv_path.open(newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        header = next(reader)
        rows = list(reader)

    assert header == fieldnames
    assert rows == [["0", "applied"], ["1", "inapplicable"]]


def test_csv_infers_sorted_fieldnames_and_converts_numpy(tmp_path):
    csv_path = tmp_path / "inferred.csv"
    with CSVLogger(csv_path) as logger:
        logger.write_row({"n_V": np.int64(3), "a": 1})
        assert logger.fieldnames == ["a", "n_V"]
    lines = csv_path.read_text(encoding="utf-8").splitlines()
    assert lines == ["a,n_V", "1,3"]


def test_csv_rejects_extra_keys(tmp_path):
    csv_path = tmp_path / "extra.csv"
    logger = CSVLogger(csv_path, fieldnames=["step"], allow_extra=False)
    logger.write_row({"step": 1})
    with pytest.raises(ValueError):
        logger.write_row({"step": 2, "extra": True})
    logger.close()


def test_jsonl_appends_lines(tmp_path):
    jsonl_path = tmp_path / "trace.jsonl"
    logger = JSONLLogger(jsonl_path, auto_timestamp=True)
    logger.log({"a": 1})
    logger.log({"a": np.int64(2), "arr": np.arange(2)})
    logger.close()

    recs = read_jsonl(jsonl_path)
    assert len(recs) == 2
    assert recs[0]["a"] == 1 and "ts" in recs[0]
    assert recs[1]["a"] == 2 and recs[1]["arr"] == [0, 1]


def test_to_jsonable_handles_reports():
    rep = DPOReport(dangling=(DanglingViolation("src", "E", 1, "V", 0),))
    data = to_jsonable({"report": rep, "sizes": (np.int64(1), 2), "path": Path("x")})
    assert data == {
        "report": {
            "valid": False,
            "identification": [],
            "dangling": [
                {"column": "src", "src_sort": "E", "src_element": 1, "tgt_sort": "V", "tgt_element": 0}
            ],
        },
        "sizes": [1, 2],
        "path": "x",
    }
    json.dumps(data)


def test_experiment_logger_log_step(tmp_path):
    csv_path = tmp_path / "exp.csv"
    jsonl_path = tmp_path / "exp.jsonl"

    with ExperimentLogger(csv_path=csv_path, csv_fieldnames=["step", "status"], jsonl_path=jsonl_path) as exp:
        exp.log_step({"step": 0, "status": "applied", "rule": "r"})
        exp.log_step({"step": 1, "status": "inapplicable"}, trace={"step": 1, "rejections": []})
        exp.log_csv_rows([{"step": 2, "status": "applied"}])
        exp.log_jsonl({"event": "end"})

    with csv_path.open(newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows == [["step", "status"], ["0", "applied"], ["1", "inapplicable"], ["2", "applied"]]

    recs = read_jsonl(jsonl_path)
    assert recs == [
        {"step": 0, "status": "applied", "rule": "r"},
        {"step": 1, "rejections": []},
        {"event": "end"},
    ]


def test_experiment_logger_without_sinks_is_noop(tmp_path):
    exp = ExperimentLogger()
    exp.log_step({"step": 0})
    exp.flush()
    exp.close()
    assert list(tmp_path.iterdir()) == []


def test_make_run_dir_is_unique(tmp_path):
    d1 = make_run_dir(tmp_path, prefix="rewrite")
    d2 = make_run_dir(tmp_path, prefix="rewrite")
    assert d1.is_dir() and d2.is_dir()
    assert d1 != d2
    assert d1.name.startswith("rewrite_")


def test_json_io_roundtrip(tmp_path):
    p = tmp_path / "nested" / "cfg.json"
    JsonIO.write(p, {"b": np.float64(0.5), "a": [1, 2]})
    assert JsonIO.read(p) == {"a": [1, 2], "b": 0.5}
