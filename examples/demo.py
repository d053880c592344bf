"""Demo script for execution-engine."""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from execution_engine.adapters.json_adapter import parse
from execution_engine.service import ExecutionInsightsService

NOW = datetime(2026, 3, 2, 18, 0, tzinfo=timezone.utc)


def main() -> None:
    store = parse(str(Path(__file__).resolve().parent / "sample_dataset.json"))
    service = ExecutionInsightsService(store)

    briefing = service.get_briefing("2026-03-02", now=NOW)
    print("Top 3:", [task["title"] for task in briefing["top3"]])
    print("Capacity:", briefing["capacity"])
    print("Alerts:", json.dumps(briefing["alerts"], ensure_ascii=False))

    committed = service.commit_top3("2026-03-02", ["t-roteiro", "t-landing"], note="Manhã protegida", now=NOW)
    print("Locked:", committed["locked"], committed["task_ids"])

    evolution = service.get_evolution_engine(window_days=30, now=NOW)
    print("Stage:", evolution["stage"]["label"], "index", evolution["index"], evolution["trend"])
    print("Next actions:", *evolution["next_actions"], sep="\n  - ")

    print("Score:", service.get_execution_score("2026-03-02", now=NOW)["score"])
    print("Week composition:", service.get_weekly_pulse(week_start="2026-03-02", now=NOW)["composition"])


if __name__ == "__main__":
    main()
