import copy
import sys

import yaml

from rlglue_chain.config_generator import AGENT_PROFILES, EXPERIMENTS, build_config, generate_configs
from rlglue_chain.experiment_runner import load_config, simulate
from rlglue_chain.parallel_runner import build_command, discover_configs, run_parallel_experiments
from rlglue_chain.runner import main as runner_main

SMALL_CONFIG = {
    "experiment_settings": {"name": "small", "num_runs": 1, "num_episodes": 2, "run_seed": 0},
    "environment_settings": {"class": "MarkovChain", "params": {"size": 5}},
    "agent_settings": {"class": "QLearningAgent",
                       "params": {"learning_rate": 0.1, "gamma": 0.9, "epsilon": 0.2}},
}


def write_small_config(directory, name="small.yaml"):
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    config = copy.deepcopy(SMALL_CONFIG)
    config["experiment_settings"]["name"] = path.stem
    with open(path, "w") as f:
        yaml.dump(config, f)
    return path


def test_generate_configs(tmp_path):
    written = generate_configs(tmp_path / "generated")
    assert len(written) == len(EXPERIMENTS)
    for path in written:
        config = load_config(path)
        assert config["agent_settings"]["class"] in {p["class"] for p in AGENT_PROFILES.values()}


def test_generated_config_runs():
    config = build_config("QLearningAgent_Optimistic", 6)
    config["experiment_settings"].update(num_runs=1, num_episodes=2)
    rewards, steps, _ = simulate(config)
    assert rewards.shape == (1, 2)
    assert config["environment_settings"]["params"]["size"] == 6


def test_generate_configs_skips_unknown_profile(tmp_path):
    written = generate_configs(tmp_path, experiments=[("NoSuchAgent", 10), ("RandomAgent", 8)])
    assert [p.name for p in written] == ["config_RandomAgent_chain8.yaml"]


def test_runner_main(tmp_path):
    config_path = write_small_config(tmp_path)
    assert runner_main([str(config_path), "--result-dir", str(tmp_path / "out")]) == 0
    runs = list((tmp_path / "out").iterdir())
    assert len(runs) == 1
    assert (runs[0] / "rewards_per_episode.npz").is_file()


def test_runner_main_missing_config(tmp_path):
    assert runner_main([str(tmp_path / "missing.yaml")]) == 1


def test_build_command(tmp_path):
    cmd = build_command(tmp_path / "a.yaml", tmp_path / "out", log_trajectory=True)
    assert cmd[0] == sys.executable
    assert cmd[1:3] == ["-m", "rlglue_chain.runner"]
    assert "--log-trajectory" in cmd
    assert cmd[cmd.index("--result-dir") + 1] == str(tmp_path / "out")


def test_discover_configs(tmp_path):
    write_small_config(tmp_path, "b.yaml")
    write_small_config(tmp_path, "a.yaml")
    write_small_config(tmp_path / "nested", "c.yaml")
    assert [p.name for p in discover_configs(tmp_path)] == ["a.yaml", "b.yaml"]
    assert len(discover_configs(tmp_path, recursive=True)) == 3


def test_parallel_runner_without_configs(tmp_path):
    assert run_parallel_experiments(tmp_path, tmp_path / "run") == (0, 0)


def test_parallel_runner_runs_each_config(tmp_path):
    configs = tmp_path / "configs"
    write_small_config(configs, "first.yaml")
    write_small_config(configs, "second.yaml")
    ok, fail = run_parallel_experiments(configs, tmp_path / "run", jobs=2)
    assert (ok, fail) == (2, 0)
    assert (tmp_path / "run" / "run_logs" / "first.out").is_file()
    assert len(list((tmp_path / "run" / "run_results").iterdir())) == 2
