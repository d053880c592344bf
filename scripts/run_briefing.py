"""Print an execution report for a JSON dataset."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from execution_engine.adapters import csv_adapter, json_adapter
from execution_engine.config import EngineConfig
from execution_engine.logging_config import setup_logging
from execution_engine.service import ExecutionInsightsService
from execution_engine.timewindow import date_key, ensure_utc, utcnow

REPORTS = ("briefing", "top3", "score", "evolution", "pulse")


def _parse_now(raw: str | None) -> datetime:
    if not raw:
        return utcnow()
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError as exc:
        raise ValueError(f"--now must be an ISO-8601 datetime, got '{raw}'") from exc


def build_report(service: ExecutionInsightsService, report: str, args: argparse.Namespace, now: datetime) -> dict:
    day = args.date or date_key(now)
    if report == "briefing":
        return service.get_briefing(day, args.workspace, strict_mode=args.strict, now=now)
    if report == "top3":
        return service.get_top3_commitment(day, args.workspace)
    if report == "score":
        return service.get_execution_score(day, args.workspace, now=now)
    if report == "evolution":
        return service.get_evolution_engine(args.workspace, args.window_days, now=now)
    if report == "pulse":
        return service.get_weekly_pulse(args.workspace, args.date, now=now)
    raise ValueError(f"Unsupported report '{report}'")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run an execution-engine report over a dataset")
    parser.add_argument("--data", required=True, help="Path to the JSON dataset file")
    parser.add_argument("--events", help="Optional CSV file with extra execution events")
    parser.add_argument("--report", choices=REPORTS, default="briefing")
    parser.add_argument("--date", help="Day (YYYY-MM-DD); defaults to the day of --now")
    parser.add_argument("--workspace", help="Restrict the report to one workspace id")
    parser.add_argument("--window-days", type=int, help="Evolution window length (clamped to 21..60)")
    parser.add_argument("--now", help="Pin the reference instant (ISO-8601)")
    parser.add_argument("--strict", action="store_true", help="Block B/C execution while A tasks are pending")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    config = EngineConfig.from_env()
    setup_logging(config.log_format, logging.DEBUG if args.verbose else logging.INFO)

    store = json_adapter.parse(args.data)
    if args.events:
        store.events.extend(csv_adapter.parse(args.events))

    service = ExecutionInsightsService(store, config)
    report = build_report(service, args.report, args, _parse_now(args.now))
    print(json.dumps(report, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
