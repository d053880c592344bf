"""Operation facade over a record store."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from execution_engine.briefing import build_briefing
from execution_engine.config import EngineConfig
from execution_engine.evolution import build_evolution_report
from execution_engine.pulse import build_weekly_pulse
from execution_engine.score import build_execution_score
from execution_engine.store import RecordStore
from execution_engine.top_focus import clear_top3, commit_top3, commitment_view


class ExecutionInsightsService:
    """Reads and commands of the execution engine.

    Every read recomputes its output from the store; ``now`` can be pinned for
    reproducible reports.
    """

    def __init__(self, store: RecordStore, config: Optional[EngineConfig] = None) -> None:
        self.store = store
        self.config = config or EngineConfig()

    def get_briefing(
        self,
        date: str,
        workspace_id: Optional[str] = None,
        strict_mode: bool = False,
        now: Optional[datetime] = None,
    ) -> dict:
        return build_briefing(self.store, date, workspace_id, strict_mode, now=now, config=self.config)

    def get_top3_commitment(self, date: str, workspace_id: Optional[str] = None) -> dict:
        return commitment_view(self.store, date, workspace_id, self.config)

    def commit_top3(
        self,
        date: str,
        task_ids: Iterable[str],
        note: Optional[str] = None,
        workspace_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        return commit_top3(self.store, date, task_ids, note, workspace_id, now=now, config=self.config)

    def clear_top3_commitment(
        self, date: str, workspace_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> dict:
        return clear_top3(self.store, date, workspace_id, now=now, config=self.config)

    def get_execution_score(
        self, date: str, workspace_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> dict:
        return build_execution_score(self.store, date, workspace_id, now=now, config=self.config)

    def get_evolution_engine(
        self,
        workspace_id: Optional[str] = None,
        window_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        return build_evolution_report(
            self.store, workspace_id=workspace_id, window_days=window_days, now=now, config=self.config
        )

    def get_weekly_pulse(
        self,
        workspace_id: Optional[str] = None,
        week_start: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        return build_weekly_pulse(self.store, week_start, workspace_id, now=now)
