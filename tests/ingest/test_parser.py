import json

import pytest

from delivery_tracker.ingest.models import DeliveryRecord, IngestionError, Region
from delivery_tracker.ingest.parser import classify_vehicle, extract_services_count, parse_rows

REPORT_DATE = "18/10/2026"

SCENARIO_LINES = [
    "Agente: João",
    "Veículo: Fiorino RJ",
    "Serviços: 42",
    "Agente: Maria",
    "Veículo: Kombi SP",
    "Serviços: 10",
]


def _rows(lines, column="A"):
    return [{column: line} for line in lines]


def test_two_drivers_from_report_lines():
    records = parse_rows(_rows(SCENARIO_LINES), report_date=REPORT_DATE)

    assert [record.to_mapping() for record in records] == [
        {
            "data": REPORT_DATE,
            "motorista": "João",
            "rota": "",
            "totalPedido": "42",
            "entregues": "",
            "pendentes": "42",
            "insucessos": "",
            "percentualEntregas": "0%",
            "percentualRotas": "0%",
            "regiao": "RJ",
        },
        {
            "data": REPORT_DATE,
            "motorista": "Maria",
            "rota": "",
            "totalPedido": "10",
            "entregues": "",
            "pendentes": "10",
            "insucessos": "",
            "percentualEntregas": "0%",
            "percentualRotas": "0%",
            "regiao": "SP",
        },
    ]


def test_open_driver_is_emitted_at_end_of_input():
    records = parse_rows(_rows(SCENARIO_LINES[:4]), report_date=REPORT_DATE)

    assert [record.driver_name for record in records] == ["João", "Maria"]
    maria = records[1]
    assert maria.total_orders == "0"
    assert maria.pending == "0"
    assert maria.region is None


def test_markers_before_first_agent_are_dropped():
    lines = ["Veículo: Fiorino RJ", "Serviços: 5", "Agente: Ana"]

    records = parse_rows(_rows(lines), report_date=REPORT_DATE)

    assert len(records) == 1
    assert records[0].driver_name == "Ana"
    assert records[0].total_orders == "0"
    assert records[0].region is None


def test_markers_apply_to_latest_agent():
    lines = ["Agente: Ana", "Agente: Bruno", "Serviços: 9", "Veículo: Van RJ"]

    records = parse_rows(_rows(lines), report_date=REPORT_DATE)

    assert records[0].total_orders == "0"
    assert records[0].region is None
    assert records[1].total_orders == "9"
    assert records[1].region is Region.RJ


def test_agent_name_is_trimmed_and_prefix_is_case_sensitive():
    lines = ["   Agente:   Pedro Alves  ", "agente: ignored", "AGENTE: ignored"]

    records = parse_rows(_rows(lines), report_date=REPORT_DATE)

    assert [record.driver_name for record in records] == ["Pedro Alves"]


def test_blank_agent_name_is_not_emitted():
    records = parse_rows(_rows(["Agente:", "Serviços: 3"]), report_date=REPORT_DATE)

    assert records == []


def test_markers_match_as_substrings():
    lines = ["Agente: Carla", "Dados do Veículo: Sprinter RJ-01", "Total de Serviços: 17 entregas"]

    records = parse_rows(_rows(lines), report_date=REPORT_DATE)

    assert records[0].region is Region.RJ
    assert records[0].total_orders == "17"


def test_services_without_digits_default_to_zero():
    lines = ["Agente: Carla", "Serviços: 12", "Serviços: n/a"]

    records = parse_rows(_rows(lines), report_date=REPORT_DATE)

    assert records[0].total_orders == "0"


def test_unrelated_rows_and_other_columns_are_ignored():
    rows = [
        {"A": "Relatório de rotas"},
        {"A": "Agente: Davi", "B": "Serviços: 99"},
        {"B": "Agente: Outro"},
        {},
        {"A": None},
        {"A": 123},
        {"A": "Serviços: 4"},
    ]

    records = parse_rows(rows, report_date=REPORT_DATE)

    assert len(records) == 1
    assert records[0].driver_name == "Davi"
    assert records[0].total_orders == "4"


def test_custom_column():
    records = parse_rows(_rows(["Agente: Eva", "Serviços: 3"], column="C"), column="C", report_date=REPORT_DATE)

    assert records[0].driver_name == "Eva"
    assert records[0].total_orders == "3"


def test_all_records_share_the_default_date_stamp(monkeypatch):
    monkeypatch.setattr("delivery_tracker.ingest.parser.today_label", lambda: "01/02/2026")

    records = parse_rows(_rows(SCENARIO_LINES))

    assert {record.date for record in records} == {"01/02/2026"}


def test_non_mapping_row_is_a_structural_error():
    with pytest.raises(IngestionError):
        parse_rows([{"A": "Agente: Ana"}, "Agente: Bruno"], report_date=REPORT_DATE)


def test_non_iterable_input_is_a_structural_error():
    with pytest.raises(IngestionError):
        parse_rows(42, report_date=REPORT_DATE)


def test_empty_input_produces_no_records():
    assert parse_rows([], report_date=REPORT_DATE) == []


def test_parse_event_is_logged(json_logger, log_stream):
    parse_rows(_rows(SCENARIO_LINES), report_date=REPORT_DATE, logger=json_logger)

    events = [json.loads(line) for line in log_stream.getvalue().splitlines()]
    assert events[-1]["phase"] == "parse"
    assert events[-1]["records"] == 2
    assert events[-1]["rows"] == 6
    assert events[-1]["run_id"] == "test-run"


def test_vehicle_and_services_helpers():
    assert classify_vehicle("Fiorino RJ") is Region.RJ
    assert classify_vehicle("Kombi SP") is Region.SP
    assert classify_vehicle("") is Region.SP
    assert extract_services_count("Serviços:   8 ") == "8"
    assert extract_services_count("Serviços: 1 2") == "1"
    assert extract_services_count("Serviços:") == "0"


def test_emitted_records_are_delivery_records():
    records = parse_rows(_rows(SCENARIO_LINES), report_date=REPORT_DATE)

    assert all(isinstance(record, DeliveryRecord) for record in records)


def test_package_exposes_parser_lazily():
    import delivery_tracker

    assert delivery_tracker.parse_rows is parse_rows


def test_oversized_services_count_does_not_abort_the_batch():
    lines = ["Agente: João", "Serviços: " + "9" * 5000, "Agente: Maria", "Serviços: 10"]

    records = parse_rows(_rows(lines), report_date=REPORT_DATE)

    assert [record.driver_name for record in records] == ["João", "Maria"]
    assert records[0].pending == "0"
    assert records[1].pending == "10"
