"""
JSON state storage for one user's reward snapshot.

Handles reading, writing, and initializing the state file.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.formulas import calendar_days_between
from ..core.models import UserSnapshot, WorkoutOutcome
from .serializers import dict_to_snapshot, snapshot_to_dict, validate_datetime

logger = logging.getLogger(__name__)

ROLLING_WINDOW_DAYS = 7


def default_state_path() -> Path:
    """~/.rep-rewards/state.json"""
    return Path.home() / ".rep-rewards" / "state.json"


class StateStore:
    """
    Manages the reward state stored as a single JSON document.

    The file holds:
    - "snapshot": the serialized UserSnapshot
    - "set_history": per-day, per-muscle set counts for the rolling window
    - "lifetime_points": running points total
    - "workouts": one short summary line per logged workout
    """

    def __init__(self, state_path: str | Path):
        """
        Initialize the state store.

        Args:
            state_path: Path to the JSON state file
        """
        self.state_path = Path(state_path)

    def exists(self) -> bool:
        """Check if the state file exists."""
        return self.state_path.exists()

    def init(self, user_id: str, bodyweight_kg: float = 0.0) -> UserSnapshot:
        """
        Create a fresh state file, creating parent directories if needed.

        Overwrites an existing file.

        Returns:
            The new, empty snapshot
        """
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        snapshot = UserSnapshot(user_id=user_id, bodyweight_kg=bodyweight_kg)
        self._write({
            "snapshot": snapshot_to_dict(snapshot),
            "set_history": [],
            "lifetime_points": 0,
            "workouts": [],
        })
        return snapshot

    def _read(self) -> dict[str, Any]:
        if not self.state_path.exists():
            raise FileNotFoundError(f"State file not found: {self.state_path}")
        with open(self.state_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: dict[str, Any]) -> None:
        tmp = self.state_path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp.replace(self.state_path)

    def load(self, now: datetime | None = None) -> UserSnapshot:
        """
        Load the snapshot.

        Args:
            now: When given, rolling_set_counts are rebuilt from the set
                 history of the last ROLLING_WINDOW_DAYS calendar days

        Returns:
            UserSnapshot

        Raises:
            FileNotFoundError: If the state file does not exist
            json.JSONDecodeError: If the file is not valid JSON
            ValidationError: If the snapshot is invalid
        """
        data = self._read()
        snapshot = dict_to_snapshot(data.get("snapshot") or {})
        if now is not None:
            snapshot.rolling_set_counts = self._rolling_counts(data.get("set_history", []), now)
        return snapshot

    def save(self, snapshot: UserSnapshot) -> None:
        """Replace the stored snapshot, keeping history and totals."""
        data = self._read()
        data["snapshot"] = snapshot_to_dict(snapshot)
        self._write(data)

    @staticmethod
    def _rolling_counts(history: list[dict[str, Any]], now: datetime) -> dict[str, int]:
        counts: dict[str, int] = {}
        for entry in history:
            day = validate_datetime(entry["date"], "set_history.date")
            if 0 <= calendar_days_between(day, now) < ROLLING_WINDOW_DAYS:
                muscle = str(entry["muscle"]).lower()
                counts[muscle] = counts.get(muscle, 0) + int(entry["sets"])
        return counts

    def record_workout(self, outcome: WorkoutOutcome, when: datetime) -> int:
        """
        Persist a processed workout.

        Saves the outcome's snapshot, appends this workout's per-muscle set
        counts to the history (dropping entries older than the window), and
        adds the points to the lifetime total.

        Returns:
            New lifetime points total
        """
        data = self._read()

        history = [
            e for e in data.get("set_history", [])
            if calendar_days_between(validate_datetime(e["date"], "set_history.date"), when) < ROLLING_WINDOW_DAYS
        ]
        per_muscle: dict[str, int] = {}
        for ex in outcome.exercises:
            for tag in ex.muscle_tags:
                per_muscle[tag.muscle_group] = per_muscle.get(tag.muscle_group, 0) + len(ex.scored_sets)
        day = when.date().isoformat()
        history.extend({"date": day, "muscle": m, "sets": n} for m, n in per_muscle.items())

        lifetime = int(data.get("lifetime_points", 0)) + outcome.reward.total_points
        workouts = list(data.get("workouts", []))
        workouts.append({
            "date": when.isoformat(),
            "exercises": len(outcome.exercises),
            "points": outcome.reward.total_points,
            "drops": [e.drop.charm_id for e in outcome.exercises if e.drop.did_drop],
        })

        data.update({
            "snapshot": snapshot_to_dict(outcome.snapshot),
            "set_history": history,
            "lifetime_points": lifetime,
            "workouts": workouts,
        })
        self._write(data)
        logger.debug("Recorded workout at %s: +%d points (lifetime %d)", day, outcome.reward.total_points, lifetime)
        return lifetime

    def lifetime_points(self) -> int:
        return int(self._read().get("lifetime_points", 0))

    def workouts(self) -> list[dict[str, Any]]:
        """Logged workout summaries, oldest first."""
        return list(self._read().get("workouts", []))
