import csv
import json

from main import main


def test_reconcile_command_prints_summary(ledger_paths, capsys):
    exit_code = main(["reconcile", *ledger_paths])
    report = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert report["summary"]["total"] == 5
    assert report["summary"]["MISMATCH"] == 1
    assert report["meta"]["a"]["rowCount"] == 4


def test_reconcile_command_writes_filtered_export(ledger_paths, tmp_path, capsys):
    output = tmp_path / "missing.csv"
    exit_code = main(["reconcile", *ledger_paths, "--filter", "MISSING_IN_A", "--output", str(output)])
    capsys.readouterr()

    assert exit_code == 0
    with open(output, encoding="utf-8") as handle:
        records = list(csv.DictReader(handle))
    assert [r["b_transaction_id"] for r in records] == ["T5"]


def test_reconcile_command_custom_rules(ledger_paths, capsys):
    rules = json.dumps({"amountTolerance": 5, "compositeKeysA": ["transaction_id"], "compositeKeysB": ["transaction_id"]})
    exit_code = main(["reconcile", *ledger_paths, "--mode", "custom", "--rules", rules])
    report = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert report["summary"]["MATCHED"] == 3


def test_invalid_json_argument_exits_2(ledger_paths, capsys):
    exit_code = main(["reconcile", *ledger_paths, "--mapping", "{not json"])
    assert exit_code == 2
    assert "--mapping" in capsys.readouterr().err


def test_unreadable_csv_exits_2(write_csv, capsys):
    empty = write_csv("empty.csv", "")
    other = write_csv("other.csv", "transaction_id\nT1\n")
    assert main(["reconcile", empty, other]) == 2
    assert "empty" in capsys.readouterr().err
