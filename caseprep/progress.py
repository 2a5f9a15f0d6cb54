import base64
import io
from typing import Any, Dict, List, Tuple

import pandas as pd

from .models import DrillStatus, FileDownload, UserProgress
from .simulation import SimulationStatus

# Scores at or above this count as a successful attempt
SUCCESS_THRESHOLD = 70

FINISHED_DRILL_STATUSES = [DrillStatus.COMPLETED.value, DrillStatus.EVALUATED.value]
FINISHED_SIMULATION_STATUSES = [SimulationStatus.COMPLETED.value, SimulationStatus.FAILED.value]

DRILL_COLUMNS = ["id", "drill_id", "drill_type", "status", "score", "time_spent", "completed_at"]
SIMULATION_COLUMNS = ["id", "status", "final_score", "steps", "time_limit", "completed_at"]


async def load_attempts(db, user_id: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    drills = await db.drill_attempts.find({"user_id": user_id}, {"_id": 0}).to_list(1000)
    simulations = await db.simulation_attempts.find(
        {"user_id": user_id}, {"_id": 0, "engine": 0}
    ).to_list(1000)
    return drills, simulations


def _frame(documents: List[Dict[str, Any]], columns: List[str]) -> pd.DataFrame:
    df = pd.DataFrame(documents)
    for column in columns:
        if column not in df.columns:
            df[column] = None
    return df[columns]


def finished_drills(documents: List[Dict[str, Any]]) -> pd.DataFrame:
    df = _frame(documents, DRILL_COLUMNS)
    df = df[df["status"].isin(FINISHED_DRILL_STATUSES) & df["score"].notna()].copy()
    df["score"] = df["score"].astype(float)
    return df


def finished_simulations(documents: List[Dict[str, Any]]) -> pd.DataFrame:
    df = _frame(documents, SIMULATION_COLUMNS)
    df = df[df["status"].isin(FINISHED_SIMULATION_STATUSES) & df["final_score"].notna()].copy()
    df["final_score"] = df["final_score"].astype(float)
    return df


def _success_rate(scores: pd.Series) -> float:
    if scores.empty:
        return 0.0
    return round(float((scores >= SUCCESS_THRESHOLD).mean() * 100), 1)


def summarize_progress(
    user_id: str,
    drill_documents: List[Dict[str, Any]],
    simulation_documents: List[Dict[str, Any]],
) -> UserProgress:
    drills = finished_drills(drill_documents)
    simulations = finished_simulations(simulation_documents)

    skill_levels = {}
    if not drills.empty:
        by_type = drills.groupby("drill_type")["score"].mean().round(1)
        skill_levels = {str(k): float(v) for k, v in by_type.items()}

    return UserProgress(
        user_id=user_id,
        drills_completed=len(drills),
        drills_success_rate=_success_rate(drills["score"]),
        simulations_completed=len(simulations),
        simulations_success_rate=_success_rate(simulations["final_score"]),
        average_drill_score=round(float(drills["score"].mean()), 1) if not drills.empty else 0.0,
        skill_levels=skill_levels,
    )


def export_progress_csv(
    user_id: str,
    drill_documents: List[Dict[str, Any]],
    simulation_documents: List[Dict[str, Any]],
) -> FileDownload:
    """One row per finished attempt, drills and simulations together, as a base64 CSV."""
    drills = finished_drills(drill_documents).rename(columns={"drill_type": "category"})
    drills.insert(0, "kind", "drill")

    simulations = finished_simulations(simulation_documents).rename(columns={"final_score": "score"})
    simulations.insert(0, "kind", "simulation")
    simulations["category"] = "ECOSYSTEM"

    columns = ["kind", "id", "category", "status", "score", "completed_at"]
    frames = [df.reindex(columns=columns) for df in (drills, simulations) if not df.empty]
    report = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=columns)
    report = report.sort_values("completed_at", na_position="last")

    buffer = io.StringIO()
    report.to_csv(buffer, index=False)

    return FileDownload(
        filename=f"progress_{user_id}.csv",
        content=base64.b64encode(buffer.getvalue().encode()).decode(),
        mime_type="text/csv",
    )
