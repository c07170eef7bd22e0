from pathlib import Path

import pytest

from learning_traffic.config import TrafficConfig
from learning_traffic.environment import EnvironmentState, EngineSnapshot
from learning_traffic.events import DecisionLog, LogCategory
from learning_traffic.persistence import format_duration
from learning_traffic.visualization.console import ConsoleVisualization, describe


def test_defaults_match_the_documented_constants():
    config = TrafficConfig()
    assert config.arrival_probability == 0.2
    assert config.max_pass == 3
    assert config.min_green_time == 20
    assert config.autosave_interval == 10.0
    assert (config.epsilon, config.alpha, config.gamma) == (0.1, 0.1, 0.9)


@pytest.mark.parametrize(
    "overrides",
    [
        {"arrival_probability": 1.5},
        {"epsilon": -0.1},
        {"min_green_time": -1},
        {"max_pass": -2},
        {"arrival_window": 0},
        {"burst_min_ticks": 20, "burst_max_ticks": 20},
        {"sim_speed": 0.5},
    ],
)
def test_invalid_configuration_is_rejected(overrides):
    with pytest.raises(ValueError):
        TrafficConfig(**overrides)


def test_ensure_paths_expands_user(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    config = TrafficConfig(state_path="~/traffic/state.json")

    config.ensure_paths()

    assert config.state_path == (tmp_path / "traffic" / "state.json").resolve()
    assert isinstance(config.state_path, Path)

    disabled = TrafficConfig(state_path=None)
    disabled.ensure_paths()
    assert disabled.state_path is None


@pytest.mark.parametrize(
    "seconds, text",
    [(0, "00:00:00"), (59, "00:00:59"), (5000, "01:23:20"), (-3, "00:00:00"), (360000, "100:00:00")],
)
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_extend_entries_are_rate_limited(clock, decision_log):
    assert decision_log.record(1, "[Q-LEARN] Action: EXTEND NS", LogCategory.EXTEND)
    assert not decision_log.record(2, "[Q-LEARN] Action: EXTEND NS", LogCategory.EXTEND)
    assert decision_log.record(3, "[SWITCH] Switched to EW", LogCategory.SWITCH)

    clock.advance(5)
    assert decision_log.record(4, "[Q-LEARN] Action: EXTEND EW", LogCategory.EXTEND)
    assert [entry.timestamp for entry in decision_log.entries()] == [1, 3, 4]


def test_decision_log_is_bounded(clock):
    log = DecisionLog(max_entries=3, time_func=clock)
    for second in range(5):
        log.record(second, f"entry {second}")

    assert len(log) == 3
    assert [entry.message for entry in log.tail(2)] == ["entry 3", "entry 4"]
    assert log.tail(0) == []


def test_alerts_are_mirrored_as_warnings(decision_log, caplog):
    decision_log.record(7, "[ALERT] Ambulance approaching on EAST!", LogCategory.ALERT)
    assert "[7s] [ALERT] Ambulance approaching on EAST!" in caplog.text


def snapshot_of(env: EnvironmentState, time: int = 0) -> EngineSnapshot:
    env.time = time
    return EngineSnapshot.capture(env, session_time=5000, paused=False, sim_speed=1.0)


def test_describe_summarizes_the_snapshot():
    env = EnvironmentState.fresh()
    env.lanes["east"].queue = 4
    env.emergency.activate("west", 5)

    line = describe(snapshot_of(env, 12))

    assert line.startswith("t=12s session=01:23:20 phase=NS")
    assert "E:4" in line
    assert line.endswith("EMERGENCY:WEST")


def test_console_reports_on_its_cadence():
    console = ConsoleVisualization(every=10)
    env = EnvironmentState.fresh()

    for second in (5, 10, 10, 15, 20):
        console.render({"snapshot": snapshot_of(env, second)})
    console.render({"snapshot": None})

    assert console.lines_emitted == 2
