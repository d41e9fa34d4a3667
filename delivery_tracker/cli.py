from __future__ import annotations

import argparse
import json
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from delivery_tracker.common.date_utils import aware_now
from delivery_tracker.common.json_logger import JsonLogger, get_logger, log_event, new_run_id, timed_event
from delivery_tracker.config import config
from delivery_tracker.ingest.models import DeliveryRecord
from delivery_tracker.ingest.workbook import ingest_file
from delivery_tracker.records.batch import apply_route
from delivery_tracker.records.editing import (
    RecordField,
    RecordValidationError,
    add_record,
    edit_record,
    new_driver_record,
    remove_record,
)
from delivery_tracker.reports.aggregator import (
    aggregate,
    aggregate_by_region,
    filter_by_region,
    parse_region_filter,
)
from delivery_tracker.reports.render import build_report_context, default_report_name, write_report
from delivery_tracker.reports.sorting import SortDirection, SortState, sort_records
from delivery_tracker.storage.snapshot import SnapshotStore

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2


class NoSnapshotError(Exception):
    """Raised when a command needs records but no fresh snapshot exists."""


def configure_logging(logger: JsonLogger) -> None:
    """Mirror the run's events into ``JSON_LOG_FILE`` when one is configured."""

    if config.json_log_file:
        logger.attach_file(config.json_log_file)


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    sys.stdout.flush()


def _build_store(args: argparse.Namespace, logger: JsonLogger) -> SnapshotStore:
    return SnapshotStore(
        args.database_url or config.database_url,
        max_age=timedelta(hours=config.snapshot_max_age_hours),
        logger=logger,
    )


def _require_records(store: SnapshotStore) -> List[DeliveryRecord]:
    records = store.load()
    if records is None:
        raise NoSnapshotError("No fresh delivery records stored; run 'ingest' first")
    return records


def _require_index(records: Sequence[DeliveryRecord], index: int) -> int:
    if not 0 <= index < len(records):
        raise RecordValidationError(f"Row {index} does not exist ({len(records)} rows loaded)")
    return index


def _sort_state(args: argparse.Namespace) -> SortState:
    if not getattr(args, "sort", None):
        return SortState()
    direction = SortDirection.DESC if args.desc else SortDirection.ASC
    return SortState(field=RecordField.parse(args.sort), direction=direction)


def _stats_payload(stats) -> Dict[str, Any]:
    return {
        "totalPedidos": stats.total_orders,
        "entregues": stats.delivered,
        "insucessos": stats.failed,
        "percentualEntregas": stats.delivery_percent,
    }


def _cmd_ingest(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = ingest_file(
        Path(args.path),
        column=(args.column or config.source_column).upper(),
        report_date=args.date,
        logger=logger,
    )
    store.save(records)
    _emit({"records": len(records), "file": str(args.path)})
    return EXIT_OK


def _cmd_show(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = _require_records(store)
    positions = {id(record): index for index, record in enumerate(records)}
    region_filter = parse_region_filter(args.region)
    for record in sort_records(filter_by_region(records, region_filter), _sort_state(args)):
        _emit({"row": positions[id(record)], **record.to_mapping()})
    return EXIT_OK


def _cmd_summary(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = _require_records(store)
    region_filter = parse_region_filter(args.region)
    if region_filter is None:
        _emit({code: _stats_payload(stats) for code, stats in aggregate_by_region(records).items()})
    else:
        _emit(_stats_payload(aggregate(records, region_filter)))
    return EXIT_OK


def _cmd_edit(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = _require_records(store)
    index = _require_index(records, args.row)
    field = RecordField.parse(args.field)
    updated = list(records)
    updated[index] = edit_record(records[index], field, args.value)
    store.save(updated)
    log_event(logger=logger, phase="edit", message="record updated", row=index, field=field.value)
    _emit({"row": index, **updated[index].to_mapping()})
    return EXIT_OK


def _cmd_add_driver(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = store.load() or []
    record = new_driver_record(
        args.name,
        region=args.region,
        total_orders=args.total,
        route=args.route,
        delivered=args.delivered,
        failed=args.failed,
    )
    updated = add_record(records, record)
    store.save(updated)
    log_event(logger=logger, phase="edit", message="driver added", row=len(updated) - 1)
    _emit({"row": len(updated) - 1, **record.to_mapping()})
    return EXIT_OK


def _cmd_remove(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = _require_records(store)
    index = _require_index(records, args.row)
    store.save(remove_record(records, index))
    log_event(logger=logger, phase="edit", message="driver removed", row=index)
    _emit({"removed": index})
    return EXIT_OK


def _cmd_assign_route(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = _require_records(store)
    updated = apply_route(records, args.rows, args.route)
    changed = sum(1 for before, after in zip(records, updated) if before is not after)
    if updated is not records:
        store.save(updated)
    log_event(logger=logger, phase="edit", message="route assigned", route=args.route, changed=changed)
    _emit({"route": args.route, "changed": changed})
    return EXIT_OK


def _cmd_report(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    records = _require_records(store)
    generated_at = aware_now()
    context = build_report_context(
        records,
        parse_region_filter(args.region),
        sort_state=_sort_state(args),
        generated_at=generated_at,
    )
    output = Path(args.output) if args.output else Path(config.reports_root) / default_report_name(generated_at)
    with timed_event(logger=logger, phase="report", message="evolution report written", output=str(output), rows=len(context["rows"])):
        write_report(context, output)
    _emit({"output": str(output), "rows": len(context["rows"])})
    return EXIT_OK


def _cmd_clear(args: argparse.Namespace, store: SnapshotStore, logger: JsonLogger) -> int:
    store.clear()
    _emit({"cleared": True})
    return EXIT_OK


COMMANDS: Dict[str, Callable[[argparse.Namespace, SnapshotStore, JsonLogger], int]] = {
    "ingest": _cmd_ingest,
    "show": _cmd_show,
    "summary": _cmd_summary,
    "edit": _cmd_edit,
    "add-driver": _cmd_add_driver,
    "remove": _cmd_remove,
    "assign-route": _cmd_assign_route,
    "report": _cmd_report,
    "clear": _cmd_clear,
}


def _add_view_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--region", type=str, default=None, help="SP, RJ or TODOS")
    parser.add_argument("--sort", type=str, default=None, help="Field to sort by (e.g. percentualEntregas)")
    parser.add_argument("--desc", action="store_true", help="Sort descending")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="delivery-tracker", description="Driver delivery evolution tracker")
    parser.add_argument("--run-id", dest="run_id", type=str, default=None, help="Override generated run id")
    parser.add_argument("--database-url", dest="database_url", type=str, default=None, help="Override DATABASE_URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Import a routing export (.xlsx or .csv)")
    ingest.add_argument("path", type=str)
    ingest.add_argument("--column", type=str, default=None, help="Column holding the report lines")
    ingest.add_argument("--date", type=str, default=None, help="Date stamp for the records (dd/mm/yyyy)")

    show = subparsers.add_parser("show", help="Print the current records as JSON lines")
    _add_view_arguments(show)

    summary = subparsers.add_parser("summary", help="Print region totals")
    summary.add_argument("--region", type=str, default=None, help="SP, RJ or TODOS")

    edit = subparsers.add_parser("edit", help="Edit one field of one row")
    edit.add_argument("row", type=int)
    edit.add_argument("field", type=str)
    edit.add_argument("value", type=str)

    add_driver = subparsers.add_parser("add-driver", help="Add a driver manually")
    add_driver.add_argument("name", type=str)
    add_driver.add_argument("--region", type=str, default="SP")
    add_driver.add_argument("--total", type=str, default="0")
    add_driver.add_argument("--route", type=str, default="")
    add_driver.add_argument("--delivered", type=str, default="")
    add_driver.add_argument("--failed", type=str, default="")

    remove = subparsers.add_parser("remove", help="Remove one row")
    remove.add_argument("row", type=int)

    assign = subparsers.add_parser("assign-route", help="Assign a route to several rows")
    assign.add_argument("route", type=str)
    assign.add_argument("rows", type=int, nargs="+")

    report = subparsers.add_parser("report", help="Write the HTML evolution report")
    _add_view_arguments(report)
    report.add_argument("--output", type=str, default=None)

    subparsers.add_parser("clear", help="Discard the stored records")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    run_id = args.run_id or new_run_id()
    root_logger = get_logger(run_id=run_id, stream=sys.stderr)
    configure_logging(root_logger)
    logger = root_logger.bind(command=args.command)
    handler = COMMANDS[args.command]
    try:
        store = _build_store(args, logger)
        return handler(args, store, logger)
    except (NoSnapshotError, ValueError) as exc:
        log_event(
            logger=logger,
            phase=args.command,
            status="error",
            message=str(exc),
            extras={"exc_type": type(exc).__name__},
        )
        return EXIT_INVALID
    except Exception as exc:
        log_event(
            logger=logger,
            phase=args.command,
            status="error",
            message="command failed",
            extras={"error": str(exc), "exc_type": type(exc).__name__},
        )
        return EXIT_FAILURE
    finally:
        root_logger.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
