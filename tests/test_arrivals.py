from conftest import ScriptedRandom

from learning_traffic.arrivals import ArrivalGenerator
from learning_traffic.config import TrafficConfig
from learning_traffic.environment import LANES, EnvironmentState, Phase


def test_successful_rolls_add_vehicles_and_start_bursts():
    env = EnvironmentState.fresh()
    generator = ArrivalGenerator(TrafficConfig(), ScriptedRandom(default=0.0))

    arrivals = generator.tick(env)

    assert arrivals == 4
    for lane in LANES:
        assert env.lanes[lane].queue == 1
        assert env.visual_queue[lane] == 1
        assert list(env.lanes[lane].recent_arrivals) == [1]
        assert env.bursts[lane] == 10
    assert env.pressure == {Phase.NS: 2, Phase.EW: 2}


def test_burst_countdown_uses_high_probability():
    env = EnvironmentState.fresh()
    env.bursts["north"] = 2
    # burst lane draws only the arrival roll, the others draw burst + arrival
    rng = ScriptedRandom(values=[0.7, 0.99, 0.7, 0.99, 0.7, 0.99, 0.7])
    generator = ArrivalGenerator(TrafficConfig(), rng)

    generator.tick(env)

    assert env.lanes["north"].queue == 1
    assert env.bursts["north"] == 1
    assert all(env.lanes[lane].queue == 0 for lane in ("south", "east", "west"))
    assert rng.draws == 7


def test_failed_rolls_record_zero_arrivals():
    env = EnvironmentState.fresh()
    generator = ArrivalGenerator(TrafficConfig(), ScriptedRandom(default=0.99))

    for _ in range(7):
        generator.tick(env)

    for lane in LANES:
        assert env.lanes[lane].queue == 0
        assert list(env.lanes[lane].recent_arrivals) == [0] * 5
    assert env.pressure == {Phase.NS: 0, Phase.EW: 0}


def test_base_probability_is_divided_by_speed():
    fast_env = EnvironmentState.fresh()
    ArrivalGenerator(TrafficConfig(), ScriptedRandom(values=[0.5, 0.1] * 4)).tick(fast_env, speed=4)
    assert fast_env.total_queue == 0

    slow_env = EnvironmentState.fresh()
    ArrivalGenerator(TrafficConfig(), ScriptedRandom(values=[0.5, 0.1] * 4)).tick(slow_env, speed=1)
    assert slow_env.total_queue == 4


def test_burst_start_probability_is_divided_by_speed():
    env = EnvironmentState.fresh()
    ArrivalGenerator(TrafficConfig(), ScriptedRandom(values=[0.005, 0.99] * 4)).tick(env, speed=2)
    assert all(count == 0 for count in env.bursts.values())

    env = EnvironmentState.fresh()
    ArrivalGenerator(TrafficConfig(), ScriptedRandom(values=[0.005, 0.99] * 4)).tick(env, speed=1)
    assert all(count == 10 for count in env.bursts.values())


def test_pressure_reflects_only_the_recent_window():
    env = EnvironmentState.fresh()
    config = TrafficConfig()
    rng = ScriptedRandom()
    generator = ArrivalGenerator(config, rng)

    # north arrives once, everything else stays empty
    rng.push(0.99, 0.0)
    generator.tick(env)
    assert env.pressure[Phase.NS] == 1

    for _ in range(5):
        generator.tick(env)
    assert env.pressure[Phase.NS] == 0
    assert env.lanes["north"].queue == 1
