import json
import math
import random

import pytest
from conftest import ScriptedRandom

from learning_traffic.config import TrafficConfig
from learning_traffic.engine import TrafficEngine, parse_speed
from learning_traffic.environment import PHASE_LANES, Phase
from learning_traffic.events import (
    EmergencyRemovalRequested,
    EmergencySpawnRequested,
    LogCategory,
    VehicleCleared,
    VehicleSpawned,
)
from learning_traffic.persistence import Q_TABLE_KEY, SESSION_TIME_KEY, StateStore


def make_engine(rng=None, store=None, **overrides) -> TrafficEngine:
    return TrafficEngine(TrafficConfig(**overrides), rng=rng or random.Random(1), store=store)


def run_ticks(engine: TrafficEngine, ticks: int) -> None:
    while engine.env.time < ticks:
        engine.step()


def test_step_advances_counters():
    engine = make_engine(rng=ScriptedRandom())

    assert engine.step()

    env = engine.env
    assert env.time == 1
    assert env.ticks_since_switch == 1
    assert engine.total_session_time == 1


def test_paused_engine_does_not_mutate():
    engine = make_engine()
    engine.set_paused(True)
    before = engine.snapshot()

    assert not engine.step()
    assert engine.run_second() == 0

    after = engine.snapshot()
    assert after.time == before.time == 0
    assert after.cumulative_reward == before.cumulative_reward
    assert engine.total_session_time == 0
    assert after.paused

    assert engine.toggle_pause() is False
    assert engine.step()


@pytest.mark.parametrize("speed, ticks", [(1, 1), (2.5, 3), (3, 3)])
def test_run_second_runs_ceil_speed_ticks(speed, ticks):
    engine = make_engine(rng=ScriptedRandom(), sim_speed=speed)

    assert engine.run_second() == ticks
    assert engine.env.time == ticks


@pytest.mark.parametrize(
    "raw, expected",
    [("4", 4.0), (2.5, 2.5), (0.5, 1.0), ("fast", 1.0), (None, 1.0), (math.nan, 1.0), (math.inf, 1.0)],
)
def test_parse_speed(raw, expected):
    assert parse_speed(raw) == expected


def test_set_speed_clamps():
    engine = make_engine()
    assert engine.set_speed("abc") == 1.0
    assert engine.set_speed(5) == 5.0
    assert engine.sim_speed == 5.0


def test_reset_keeps_learned_values():
    engine = make_engine(rng=random.Random(3))
    run_ticks(engine, 200)
    learned = engine.table.to_dict()
    assert learned

    engine.reset()

    env = engine.env
    assert env.time == 0
    assert env.cumulative_reward == 0
    assert env.total_wait == 0
    assert all(lane.queue == 0 for lane in env.lanes.values())
    assert env.phase is Phase.NS
    assert not env.emergency.active
    assert engine.table.to_dict() == learned
    assert engine.total_session_time == 200
    assert engine.agent.prev_state is None
    assert [entry.message for entry in engine.log.entries()] == ["Simulation reset"]


def test_invariants_hold_over_a_long_run():
    engine = make_engine(rng=random.Random(7))
    seen = []

    def check(snapshot):
        for lane, view in snapshot.lanes.items():
            assert view.queue >= 0
            assert view.visual_queue >= 0
            assert view.green == (lane in PHASE_LANES[snapshot.phase])
        for phase in Phase:
            assert 0 <= snapshot.pressure[phase] <= 10
        assert snapshot.emergency_active == (snapshot.emergency_lane is not None)
        if seen:
            assert snapshot.time - seen[-1].time in (0, 1)
            assert snapshot.total_wait >= seen[-1].total_wait
        seen.append(snapshot)

    engine.add_listener(check)
    for _ in range(500):
        engine.step()

    assert len(seen) == 500
    assert seen[-1].time == engine.total_session_time


def test_agent_updates_only_at_decision_points(monkeypatch):
    engine = make_engine(rng=random.Random(11))
    observed = []
    original = engine.agent.update

    def spy(*args):
        observed.append(engine.env.ticks_since_switch)
        return original(*args)

    monkeypatch.setattr(engine.agent, "update", spy)
    for _ in range(300):
        engine.step()

    assert observed
    assert all(ticks >= 20 for ticks in observed)


def test_emergency_spawn_is_reported_once():
    engine = make_engine(rng=ScriptedRandom(values=[0.0], choice_index=1))
    engine.step()

    assert engine.drain_events() == [EmergencySpawnRequested("south")]
    assert engine.drain_events() == []
    assert engine.log.entries()[-1].category is LogCategory.ALERT


def test_presentation_messages():
    engine = make_engine()
    env = engine.env
    env.visual_queue["north"] = 2

    engine.notify(VehicleSpawned("north"))
    engine.notify(VehicleSpawned("east"))
    assert env.visual_queue == {"north": 1, "south": 0, "east": 0, "west": 0}

    env.emergency.activate("east", 5)
    engine.notify(VehicleSpawned("east", emergency=True))
    assert not env.emergency.visual_pending
    assert env.emergency.visible_vehicles == 1

    engine.notify(VehicleCleared("east", emergency=True))
    engine.notify(VehicleCleared("east", emergency=True))
    assert env.emergency.visible_vehicles == 0

    engine.notify(VehicleSpawned("nowhere"))
    assert env.visual_queue["north"] == 1


def test_emergency_acknowledgement_without_an_episode_is_ignored():
    engine = make_engine()
    env = engine.env

    engine.notify(VehicleSpawned("west", emergency=True))
    assert env.emergency.visible_vehicles == 0

    env.emergency.activate("west", 5)
    env.emergency.visual_pending = False
    env.emergency.visible_vehicles = 0
    engine.step()

    assert env.emergency_stats.crossed == 1


def test_resolution_ends_the_tick():
    engine = make_engine(rng=ScriptedRandom(default=0.0))
    env = engine.env
    env.emergency.activate("east", 5)
    env.emergency.visual_pending = False
    seen = []
    engine.add_listener(seen.append)

    assert engine.step() is False

    assert env.emergency_stats.crossed == 1
    assert not env.emergency.active
    assert env.time == 0
    assert env.ticks_since_switch == 0
    assert engine.total_session_time == 0
    assert all(lane.queue == 0 for lane in env.lanes.values())
    assert all(count == 0 for count in env.visual_queue.values())
    assert env.cumulative_reward == 0
    assert seen[-1].emergency_stats.crossed == 1

    assert engine.step() is True
    assert env.time == 1


def test_crash_ends_the_tick():
    engine = make_engine(rng=ScriptedRandom(values=[0.1]))
    env = engine.env
    env.lanes["north"].queue = 2
    env.emergency.activate("east", 5)
    env.emergency.visual_pending = False
    env.emergency.visible_vehicles = 1

    assert engine.step() is False

    assert env.emergency_stats.crashed == 1
    assert engine.drain_events() == [EmergencyRemovalRequested("east")]
    assert env.time == 0
    assert engine.total_session_time == 0
    # no release and no waiting penalty on the crash tick
    assert env.lanes["north"].queue == 2
    assert env.cumulative_reward == pytest.approx(-200 - 500)


def test_run_second_counts_only_advancing_ticks():
    engine = make_engine(rng=ScriptedRandom(), sim_speed=3)
    env = engine.env
    env.emergency.activate("south", 5)
    env.emergency.visual_pending = False

    assert engine.run_second() == 2
    assert env.time == 2


def test_run_second_respects_a_tick_limit():
    engine = make_engine(rng=ScriptedRandom(), sim_speed=3)

    assert engine.run_second(2) == 2
    assert engine.run_second(0) == 0
    assert engine.env.time == 2


def test_persistence_round_trip(tmp_path):
    path = tmp_path / "state.json"
    engine = make_engine(rng=random.Random(5), store=StateStore(path))
    run_ticks(engine, 100)

    assert engine.save_state()
    payload = json.loads(path.read_text())
    assert payload[SESSION_TIME_KEY] == 100
    assert set(payload[Q_TABLE_KEY]) == set(engine.table.to_dict())

    restored = make_engine(store=StateStore(path))
    assert restored.load_state() == len(engine.table)
    assert restored.total_session_time == 100
    assert restored.table.to_dict() == engine.table.to_dict()


def test_corrupt_state_starts_fresh(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{not json")
    engine = make_engine(store=StateStore(path))

    assert engine.load_state() == 0
    assert engine.total_session_time == 0
    assert len(engine.table) == 0
    assert "Could not load saved state" in caplog.text


def test_save_failure_is_reported_not_raised(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    engine = make_engine(store=StateStore(blocker / "state.json"))

    assert engine.save_state() is False
    assert "Could not save state" in caplog.text


def test_clear_saved_state(tmp_path):
    path = tmp_path / "state.json"
    engine = make_engine(store=StateStore(path))
    engine.step()
    engine.save_state()
    assert path.exists()

    assert engine.clear_saved_state()
    assert not path.exists()
    assert engine.total_session_time == 0


def test_without_store_nothing_is_persisted():
    engine = make_engine()
    assert engine.load_state() == 0
    assert engine.save_state() is False
    assert engine.clear_saved_state() is False
