import copy
from pathlib import Path

import numpy as np
import pytest
import yaml

from rlglue_chain.agents import FixedActionAgent, QLearningAgent, RandomAgent
from rlglue_chain.engine import LEFT, MarkovChain
from rlglue_chain.experiment_runner import (
    EpisodeResult,
    create_agent,
    create_environment,
    load_config,
    run_episode,
    run_experiment,
    simulate,
    validate_config,
)
from rlglue_chain.utils.trajectory_log_schema import TRAJECTORY_LOG_COLUMN_MAP

CONFIG = {
    "experiment_settings": {
        "name": "test_chain",
        "num_runs": 2,
        "num_episodes": 5,
        "run_seed": 7,
    },
    "environment_settings": {
        "class": "MarkovChain",
        "params": {"size": 10},
    },
    "agent_settings": {
        "class": "QLearningAgent",
        "params": {"learning_rate": 0.1, "gamma": 0.9, "epsilon": 0.1},
    },
}


def make_config(**experiment_settings):
    config = copy.deepcopy(CONFIG)
    config["experiment_settings"].update(experiment_settings)
    return config


def write_config(tmp_path, config, name="config.yaml"):
    path = tmp_path / name
    with open(path, "w") as f:
        yaml.dump(config, f, sort_keys=False)
    return path


def test_greedy_agent_walks_right_to_the_goal():
    rng = np.random.default_rng(0)
    env = MarkovChain(10, rng, initial_state=5)
    agent = QLearningAgent(env.action_space, env.state_space, learning_rate=0.1, gamma=0.9,
                           epsilon=0.0, rng=rng, initial_Q_value=0.0)
    agent.Q[:, 1] = 1.0

    result = run_episode(env, agent)

    assert result == EpisodeResult(total_reward=-3.0, step_count=5)
    assert env.get_state() == 10


def test_episode_ends_at_left_boundary():
    env = MarkovChain(10, np.random.default_rng(0), initial_state=5)
    result = run_episode(env, FixedActionAgent(env.action_space, action=LEFT))
    assert result == (-4.0, 4)
    assert env.get_state() == 1


def test_max_steps_truncates_episode():
    env = MarkovChain(10, np.random.default_rng(0), initial_state=5)
    result = run_episode(env, FixedActionAgent(env.action_space, action=LEFT), max_steps=2)
    assert result == (-2.0, 2)
    assert not env.is_terminal()
    with pytest.raises(ValueError):
        run_episode(env, FixedActionAgent(env.action_space), max_steps=0)


def test_random_walk_terminates():
    rng = np.random.default_rng(3)
    env = MarkovChain(10, rng)
    agent = RandomAgent(env.action_space, rng)
    for _ in range(20):
        result = run_episode(env, agent)
        assert result.step_count >= 1
        assert env.is_terminal()


def test_trajectory_log_rows():
    env = MarkovChain(10, np.random.default_rng(0), initial_state=5)
    log = []
    result = run_episode(env, FixedActionAgent(env.action_space, action=LEFT),
                         trajectory_log=log, experiment_num=1, episode_num=2)
    assert len(log) == result.step_count + 1
    first, last = log[0], log[-1]
    assert first[TRAJECTORY_LOG_COLUMN_MAP['state_new']] == 5
    assert first[TRAJECTORY_LOG_COLUMN_MAP['action']] == -1
    assert last[TRAJECTORY_LOG_COLUMN_MAP['state_new']] == 1
    assert last[TRAJECTORY_LOG_COLUMN_MAP['terminal']] == 1
    assert last[TRAJECTORY_LOG_COLUMN_MAP['cum_reward']] == result.total_reward
    assert last[TRAJECTORY_LOG_COLUMN_MAP['experiment_num']] == 1
    assert last[TRAJECTORY_LOG_COLUMN_MAP['episode_num']] == 2


def test_simulate_is_deterministic_under_fixed_seed():
    config = make_config(num_runs=1, num_episodes=1, run_seed=42)
    rewards_a, steps_a, _ = simulate(config)
    rewards_b, steps_b, _ = simulate(copy.deepcopy(config))
    assert rewards_a.shape == steps_a.shape == (1, 1)
    assert np.array_equal(rewards_a, rewards_b)
    assert np.array_equal(steps_a, steps_b)


def test_simulate_shapes_and_consistency():
    rewards, steps, trajectory = simulate(make_config(num_runs=3, num_episodes=4))
    assert rewards.shape == steps.shape == (3, 4)
    assert np.all(steps >= 1)
    # Every step but the last costs 1; the last pays +1 only at the right end.
    assert np.all((rewards == -steps) | (rewards == -steps + 2))
    assert trajectory == []


def test_simulate_collects_trajectory():
    _, steps, trajectory = simulate(make_config(num_runs=1, num_episodes=3), log_trajectory=True)
    assert len(trajectory) == steps.sum() + 3


def test_simulate_with_random_agent():
    config = make_config(num_runs=1, num_episodes=3)
    config["agent_settings"] = {"class": "RandomAgent"}
    rewards, steps, _ = simulate(config)
    assert rewards.shape == (1, 3)


def test_create_environment_and_agent():
    rng = np.random.default_rng(0)
    env = create_environment({"class": "MarkovChain", "params": {"size": 6}}, {"rng": rng})
    assert env.size == 6
    agent = create_agent(
        {"class": "QLearningAgent", "params": {"learning_rate": 0.2, "gamma": 0.5, "epsilon": 0.0}},
        {"action_space": env.action_space, "state_space": env.state_space, "rng": rng},
    )
    assert agent.Q.shape == (6, 2)
    assert agent.learning_rate == 0.2


def test_create_agent_unknown_class():
    with pytest.raises(ValueError):
        create_agent({"class": "SarsaAgent"}, {})
    with pytest.raises(ValueError):
        create_environment({"class": "np"}, {})


def test_create_agent_missing_parameters():
    with pytest.raises(TypeError, match="epsilon"):
        create_agent(
            {"class": "QLearningAgent", "params": {"learning_rate": 0.1, "gamma": 0.9}},
            {"action_space": np.array([1, 2]), "state_space": np.arange(1, 4),
             "rng": np.random.default_rng(0)},
        )


def test_validate_config_errors():
    config = make_config()
    del config["agent_settings"]
    with pytest.raises(KeyError):
        validate_config(config)
    with pytest.raises(ValueError):
        validate_config(make_config(num_runs=0))
    config = make_config()
    del config["experiment_settings"]["num_episodes"]
    with pytest.raises(KeyError):
        validate_config(config)


def test_load_config(tmp_path):
    path = write_config(tmp_path, CONFIG)
    assert load_config(path) == CONFIG


def test_run_experiment_saves_results(tmp_path):
    config_path = write_config(tmp_path, make_config(num_runs=2, num_episodes=3))
    results_path = run_experiment(str(config_path), base_output_dir=str(tmp_path / "results"),
                                  log_trajectory=True)

    with np.load(f"{results_path}/rewards_per_episode.npz") as data:
        assert data["rewards"].shape == (2, 3)
    with np.load(f"{results_path}/steps_per_episode.npz") as data:
        steps = data["steps"]
        assert steps.shape == (2, 3)
    with np.load(f"{results_path}/trajectory_log.npz") as data:
        trajectory = data["trajectory"]
        assert len(trajectory) == steps.sum() + 6
        assert trajectory["state_new"][0] >= 2

    assert (tmp_path / "results").is_dir()
    assert (Path(results_path) / "experiment_log.log").is_file()
    with open(f"{results_path}/config.yaml") as f:
        assert yaml.safe_load(f)["experiment_settings"]["num_runs"] == 2
