"""Streamlit demo UI for execution-engine."""

from __future__ import annotations

import tempfile
from datetime import datetime, time, timezone
from typing import Any

from execution_engine.adapters import json_adapter
from execution_engine.service import ExecutionInsightsService
from execution_engine.store import InMemoryStore

DEMO_DATASET = "examples/sample_dataset.json"


def _parse_uploaded(uploaded_file) -> InMemoryStore:
    with tempfile.NamedTemporaryFile(delete=False, suffix=".json") as handle:
        handle.write(uploaded_file.getbuffer())
        temp_path = handle.name
    return json_adapter.parse(temp_path)


def _workspace_options(store: InMemoryStore) -> dict[str, str | None]:
    options: dict[str, str | None] = {"Todas as frentes": None}
    for workspace in store.list_workspaces():
        options[workspace.name] = workspace.id
    return options


def run_engine(
    store: InMemoryStore, day: str, workspace_id: str | None, window_days: int, strict: bool, now: datetime
) -> dict[str, Any]:
    """Run every read of the engine and return a UI-friendly payload."""

    service = ExecutionInsightsService(store)
    return {
        "briefing": service.get_briefing(day, workspace_id, strict_mode=strict, now=now),
        "score": service.get_execution_score(day, workspace_id, now=now),
        "evolution": service.get_evolution_engine(workspace_id, window_days, now=now),
        "pulse": service.get_weekly_pulse(workspace_id, day, now=now),
    }


def main() -> None:
    import streamlit as st

    st.set_page_config(page_title="Execution Engine Demo", layout="wide")
    st.title("Execution Engine: Streamlit Demo")

    with st.sidebar:
        st.header("Controls")
        uploaded = st.file_uploader("Upload dataset", type=["json"])
        use_demo = st.checkbox("Load demo dataset", value=True)
        day = st.date_input("Day", value=datetime(2026, 3, 2).date())
        at = st.time_input("Reference time (UTC)", value=time(18, 0))
        window_days = st.slider("Evolution window (days)", min_value=21, max_value=60, value=30)
        strict = st.checkbox("Strict mode", value=False)
        run = st.button("Run engine", type="primary")

    if not run:
        st.info("Configure inputs in the sidebar and click **Run engine**.")
        return

    try:
        if use_demo:
            store = json_adapter.parse(DEMO_DATASET)
        elif uploaded is not None:
            store = _parse_uploaded(uploaded)
        else:
            st.error("Please upload a JSON dataset or enable 'Load demo dataset'.")
            return

        options = _workspace_options(store)
        workspace_id = options[st.selectbox("Workspace", options=list(options))]
        now = datetime.combine(day, at, tzinfo=timezone.utc)
        result = run_engine(store, day.isoformat(), workspace_id, window_days, strict, now)

        briefing = result["briefing"]
        st.subheader("A) Briefing")
        b1, b2, b3, b4 = st.columns(4)
        b1.metric("Pending A", briefing["pending_a"])
        b2.metric("Available min", briefing["capacity"]["available_minutes"])
        b3.metric("Planned min", briefing["capacity"]["planned_task_minutes"])
        b4.metric("Execution score", result["score"]["score"])
        st.write("**Top 3**", "(locked)" if briefing["top3_meta"]["locked"] else "(suggested)")
        st.table(briefing["top3"] or [{"title": "Nenhuma tarefa elegível"}])
        if briefing["top3_meta"]["guided_swap_needed"]:
            st.warning(briefing["top3_meta"]["swap_reason"])
        st.table([briefing["alerts"]])

        st.subheader("B) Actionables")
        for name, rows in briefing["actionables"].items():
            if rows:
                st.write(f"**{name}**")
                st.table(rows)

        evolution = result["evolution"]
        st.subheader("C) Evolution")
        e1, e2, e3 = st.columns(3)
        e1.metric("Stage", evolution["stage"]["label"])
        e2.metric("Index", evolution["index"], delta=evolution["delta_index"])
        e3.metric("Confidence", evolution["confidence"])
        st.write(evolution["narrative"]["summary"])
        st.write(evolution["promotion"]["reason"])
        st.table(evolution["explainable_rules"])
        st.line_chart({point["label"]: point["index"] for point in evolution["learning_loop"]["weekly_trajectory"]})

        st.subheader("D) Weekly pulse")
        st.table(result["pulse"]["days"])
        st.table([result["pulse"]["composition"]])

    except ValueError as exc:
        st.error(f"Input error: {exc}")


if __name__ == "__main__":
    main()
