"""
Minimal smoke tests for the rep-rewards CLI.

Tests basic functionality:
- App runs and shows help
- State file is created
- Items can be equipped
- Sets are scored and workouts logged
- Levels, curve, catalog and drop odds are shown
"""

import json
import tempfile
from pathlib import Path

import pytest
from typer.testing import CliRunner

from rep_rewards.cli.main import app


runner = CliRunner()


@pytest.fixture
def temp_state_dir(monkeypatch):
    """Temporary directory for state files, also used as HOME."""
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("HOME", tmpdir)
        yield Path(tmpdir)


@pytest.fixture
def state_path(temp_state_dir):
    """An initialized state file."""
    path = temp_state_dir / "state.json"
    result = runner.invoke(app, ["init", "--state", str(path), "--bodyweight-kg", "80"])
    assert result.exit_code == 0, result.output
    return path


QUICK_BENCH = [
    "log-workout",
    "--exercise", "bench",
    "--muscles", "chest,triceps",
    "--sets", "3x8@100",
    "--goal", "Hypertrophy",
    "--date", "2026-10-19",
    "--seed", "7",
]


class TestCLISmoke:
    """Basic smoke tests for CLI commands."""

    def test_app_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "log-workout" in result.output

    def test_init_creates_state(self, temp_state_dir):
        path = temp_state_dir / "sub" / "state.json"
        result = runner.invoke(app, ["init", "--state", str(path), "--user-id", "alex"])
        assert result.exit_code == 0
        assert path.exists()
        assert json.loads(path.read_text())["snapshot"]["user_id"] == "alex"

    def test_init_rejects_bad_bodyweight(self, temp_state_dir):
        result = runner.invoke(app, ["init", "--state", str(temp_state_dir / "s.json"), "--bodyweight-kg", "0"])
        assert result.exit_code == 1

    def test_init_existing_declined(self, state_path):
        result = runner.invoke(app, ["init", "--state", str(state_path)], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled" in result.output

    def test_init_force_overwrites(self, state_path):
        result = runner.invoke(app, ["init", "--state", str(state_path), "--force", "--user-id", "sam"])
        assert result.exit_code == 0
        assert "Overwriting" in result.output
        assert json.loads(state_path.read_text())["snapshot"]["user_id"] == "sam"

    def test_score_set_json(self):
        result = runner.invoke(app, ["score-set", "--reps", "8", "--weight", "100", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["base_points"] == 800
        assert data["final_points"] == 1000
        assert data["bonuses"][0]["kind"] == "rep_range"

    def test_score_set_table(self):
        result = runner.invoke(app, ["score-set", "--reps", "10", "--bodyweight", "70"])
        assert result.exit_code == 0
        assert "455" in result.output

    def test_score_set_bad_goal(self):
        result = runner.invoke(app, ["score-set", "--reps", "8", "--goal", "Power"])
        assert result.exit_code == 1


class TestWorkoutFlow:
    def test_quick_log_json(self, state_path):
        result = runner.invoke(app, QUICK_BENCH + ["--json", "--state", str(state_path)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        # 3 × 1000 set points + 50 completion; nothing equipped
        assert data["reward"]["total_points"] == 3050
        assert data["saved"] is True
        assert data["lifetime_points"] == 3050
        assert data["exercises"][0]["muscles"] == ["chest", "triceps"]
        # "3x8@100" is three sets of eight
        assert [s["base_points"] for s in data["exercises"][0]["sets"]] == [800, 800, 800]
        assert len(data["reward"]["charm_bonuses"]) == 1

    def test_dry_run_does_not_save(self, state_path):
        result = runner.invoke(app, QUICK_BENCH + ["--dry-run", "--state", str(state_path)])
        assert result.exit_code == 0
        assert "nothing saved" in result.output
        assert json.loads(state_path.read_text())["lifetime_points"] == 0

    def test_log_from_file_with_equipment(self, state_path, temp_state_dir):
        result = runner.invoke(app, [
            "equip", "--charm", "momentum", "--grant", "--rune", "volume_king", "--state", str(state_path),
        ])
        assert result.exit_code == 0, result.output

        workout = {
            "completed_at": "2026-10-19T18:00:00",
            "goal": "Hypertrophy",
            "duration_minutes": 45,
            "exercises": [{
                "exercise_id": "bench",
                "primary_muscle": "chest",
                "muscles": ["chest", "triceps"],
                "sets": [{"reps": 8, "weight_kg": 100}] * 3,
            }],
        }
        workout_file = temp_state_dir / "workout.json"
        workout_file.write_text(json.dumps(workout))

        result = runner.invoke(app, ["log-workout", str(workout_file), "--seed", "1", "--json", "--state", str(state_path)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["reward"]["total_charm_points"] == 300
        assert data["reward"]["total_points"] == 3375

    def test_human_output(self, state_path):
        result = runner.invoke(app, QUICK_BENCH + ["--force-drop", "--state", str(state_path)])
        assert result.exit_code == 0, result.output
        assert "Charm drop!" in result.output
        assert "Lifetime points" in result.output

    def test_levels_after_workout(self, state_path):
        runner.invoke(app, QUICK_BENCH + ["--state", str(state_path)])
        result = runner.invoke(app, ["levels", "--as-of", "2026-10-20", "--json", "--state", str(state_path)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["chest"]["level"] == 1
        assert data["chest"]["total_xp_earned"] == 24
        assert data["chest"]["decay_status"] == "active"

        result = runner.invoke(app, ["levels", "--as-of", "2026-11-30", "--state", str(state_path)])
        assert result.exit_code == 0
        assert "decaying" in result.output

    def test_log_without_state(self, temp_state_dir):
        result = runner.invoke(app, QUICK_BENCH + ["--state", str(temp_state_dir / "missing.json")])
        assert result.exit_code == 1

    def test_log_without_sets(self, state_path):
        result = runner.invoke(app, ["log-workout", "--exercise", "bench", "--state", str(state_path)])
        assert result.exit_code == 1


class TestItemsCLI:
    def test_equip_unknown_charm(self, state_path):
        result = runner.invoke(app, ["equip", "--charm", "nope", "--state", str(state_path)])
        assert result.exit_code == 1
        assert "Unknown charm" in result.output

    def test_equip_unowned_charm(self, state_path):
        result = runner.invoke(app, ["equip", "--charm", "momentum", "--state", str(state_path)])
        assert result.exit_code == 1

    def test_catalog(self, state_path):
        result = runner.invoke(app, ["catalog", "--owned", "--state", str(state_path)])
        assert result.exit_code == 0
        assert "momentum" in result.output
        assert "full_body" in result.output

    def test_drop_odds_json(self):
        result = runner.invoke(app, ["drop-odds", "--adherence", "1.0", "--pr", "--pity", "10", "--level", "7", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["quality_tier"] == 3
        assert data["drop_chance"] == pytest.approx(0.61)
        assert data["final_drop_chance"] == pytest.approx(0.91)
        assert data["max_allowed_rarity"] == "Rare"
        assert data["rarity_odds"]["Epic"] == 0.0
        assert sum(data["rarity_odds"].values()) == pytest.approx(1.0)

    def test_level_curve(self):
        result = runner.invoke(app, ["level-curve"])
        assert result.exit_code == 0
        assert "Level curve" in result.output

    def test_bad_config_file(self, temp_state_dir):
        bad = temp_state_dir / "bad.yaml"
        bad.write_text("points:\n  no_such_key: 1\n")
        result = runner.invoke(app, ["level-curve", "--config", str(bad)])
        assert result.exit_code == 1
