import json

import openpyxl
import pytest

from delivery_tracker import cli
from delivery_tracker.common.db import dispose_engine
from delivery_tracker.config import Config


@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    yield url
    dispose_engine(url)


@pytest.fixture
def report_file(tmp_path):
    path = tmp_path / "rotas.xlsx"
    wb = openpyxl.Workbook()
    sheet = wb.active
    for line in [
        "Agente: João",
        "Veículo: Fiorino RJ",
        "Serviços: 42",
        "Agente: Maria",
        "Veículo: Kombi SP",
        "Serviços: 10",
    ]:
        sheet.append([line])
    wb.save(path)
    return path


def _run(capsys, database_url, *argv):
    exit_code = cli.main(["--database-url", database_url, *argv])
    captured = capsys.readouterr()
    lines = [json.loads(line) for line in captured.out.splitlines() if line.strip()]
    events = [json.loads(line) for line in captured.err.splitlines() if line.strip()]
    return exit_code, lines, events


def _ingest(capsys, database_url, report_file):
    return _run(capsys, database_url, "ingest", str(report_file), "--date", "18/10/2026")


def test_ingest_then_show(capsys, database_url, report_file):
    exit_code, lines, events = _ingest(capsys, database_url, report_file)

    assert exit_code == cli.EXIT_OK
    assert lines == [{"records": 2, "file": str(report_file)}]
    assert {event["phase"] for event in events} >= {"read", "parse", "snapshot"}

    exit_code, rows, _ = _run(capsys, database_url, "show", "--sort", "motorista", "--desc")

    assert exit_code == cli.EXIT_OK
    assert [(row["row"], row["motorista"], row["regiao"]) for row in rows] == [
        (1, "Maria", "SP"),
        (0, "João", "RJ"),
    ]


def test_show_with_region_filter(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    _, rows, _ = _run(capsys, database_url, "show", "--region", "RJ")

    assert [row["motorista"] for row in rows] == ["João"]


def test_edit_recomputes_and_persists(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    exit_code, lines, _ = _run(capsys, database_url, "edit", "0", "entregues", "41")

    assert exit_code == cli.EXIT_OK
    assert lines[0]["entregues"] == "41"
    assert lines[0]["percentualEntregas"] == "97.6%"
    assert lines[0]["pendentes"] == "1"

    _, lines, _ = _run(capsys, database_url, "summary", "--region", "RJ")
    assert lines == [
        {"totalPedidos": 42, "entregues": 41, "insucessos": 0, "percentualEntregas": "97.6%"}
    ]


def test_summary_for_every_region(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    _, lines, _ = _run(capsys, database_url, "summary")

    assert set(lines[0]) == {"SP", "RJ", "TODOS"}
    assert lines[0]["TODOS"]["totalPedidos"] == 52


def test_edit_of_derived_field_is_rejected(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    exit_code, lines, events = _run(capsys, database_url, "edit", "0", "pendentes", "3")

    assert exit_code == cli.EXIT_INVALID
    assert lines == []
    assert events[-1]["status"] == "error"


def test_edit_of_missing_row_is_rejected(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    exit_code, _, _ = _run(capsys, database_url, "edit", "9", "rota", "R1")

    assert exit_code == cli.EXIT_INVALID


def test_add_driver_and_remove(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    exit_code, lines, _ = _run(
        capsys, database_url, "add-driver", "Ana", "--region", "RJ", "--total", "10", "--delivered", "10"
    )

    assert exit_code == cli.EXIT_OK
    assert lines[0]["row"] == 2
    assert lines[0]["percentualEntregas"] == "100.0%"

    _run(capsys, database_url, "remove", "0")
    _, rows, _ = _run(capsys, database_url, "show")
    assert [row["motorista"] for row in rows] == ["Maria", "Ana"]


def test_add_driver_without_snapshot_starts_new_set(capsys, database_url):
    exit_code, lines, _ = _run(capsys, database_url, "add-driver", "Ana")

    assert exit_code == cli.EXIT_OK
    assert lines[0]["row"] == 0
    assert lines[0]["regiao"] == "SP"


def test_assign_route(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    exit_code, lines, _ = _run(capsys, database_url, "assign-route", "R5", "0", "1", "7")

    assert exit_code == cli.EXIT_OK
    assert lines == [{"route": "R5", "changed": 2}]
    _, rows, _ = _run(capsys, database_url, "show")
    assert [row["rota"] for row in rows] == ["R5", "R5"]


def test_report_writes_html(capsys, database_url, report_file, tmp_path):
    _ingest(capsys, database_url, report_file)
    output = tmp_path / "out" / "evolucao.html"

    exit_code, lines, _ = _run(capsys, database_url, "report", "--region", "SP", "--output", str(output))

    assert exit_code == cli.EXIT_OK
    assert lines == [{"output": str(output), "rows": 1}]
    assert "Maria" in output.read_text(encoding="utf-8")


def test_commands_without_snapshot_fail(capsys, database_url):
    exit_code, lines, events = _run(capsys, database_url, "show")

    assert exit_code == cli.EXIT_INVALID
    assert lines == []
    assert "ingest" in events[-1]["message"]


def test_clear(capsys, database_url, report_file):
    _ingest(capsys, database_url, report_file)

    exit_code, lines, _ = _run(capsys, database_url, "clear")

    assert exit_code == cli.EXIT_OK
    assert lines == [{"cleared": True}]
    assert _run(capsys, database_url, "show")[0] == cli.EXIT_INVALID


def test_bad_workbook_fails_without_touching_snapshot(capsys, database_url, report_file, tmp_path):
    _ingest(capsys, database_url, report_file)
    broken = tmp_path / "broken.xlsx"
    broken.write_bytes(b"garbage")

    exit_code, _, _ = _run(capsys, database_url, "ingest", str(broken))

    assert exit_code == cli.EXIT_INVALID
    _, rows, _ = _run(capsys, database_url, "show")
    assert len(rows) == 2


def test_unexpected_errors_exit_with_failure(capsys, database_url, monkeypatch):
    def _boom(args, store, logger):
        raise RuntimeError("database unavailable")

    monkeypatch.setitem(cli.COMMANDS, "clear", _boom)

    exit_code, _, events = _run(capsys, database_url, "clear")

    assert exit_code == cli.EXIT_FAILURE
    assert events[-1]["extras"]["error"] == "database unavailable"


def test_json_log_file_receives_command_events(capsys, database_url, monkeypatch, tmp_path):
    log_file = tmp_path / "logs" / "run.jsonl"
    monkeypatch.setattr(cli, "config", Config.load_from_env({"JSON_LOG_FILE": str(log_file)}))

    exit_code, _, events = _run(capsys, database_url, "clear")

    assert exit_code == cli.EXIT_OK
    logged = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert logged == events
    assert {event["command"] for event in logged} == {"clear"}
