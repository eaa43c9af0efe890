"""
This module serves as the main entry point for running reinforcement learning
experiments. It orchestrates the entire process, from loading configurations
to initializing the agent and the environment, running the episodes, and
finally logging and saving the results.

The runner is driven by a YAML configuration file that defines all
experimental parameters. This allows for easy modification of agent types,
hyperparameters, and environment settings without changing the core code.
"""

import inspect
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import NamedTuple, Optional, Union

import numpy as np
import yaml
from tqdm.auto import tqdm

from . import agents
from . import engine
from .engine import BaseEnvironment
from .utils.trajectory_log_schema import TRAJECTORY_LOG_COLUMN_MAP, TRAJECTORY_LOG_DTYPE

REQUIRED_SECTIONS = ('experiment_settings', 'environment_settings', 'agent_settings')


class EpisodeResult(NamedTuple):
    """The return and length of a single episode."""
    total_reward: float
    step_count: int


def load_config(config_file_path: Union[str, Path]) -> dict:
    """
    Loads and returns the YAML configuration file.

    Args:
        config_file_path (str): The file path to the YAML configuration file.

    Returns:
        dict: A dictionary containing the parsed configuration settings.
    """
    logging.info(f"Loading configuration from: {config_file_path}")

    with open(config_file_path, 'r') as f:
        config = yaml.safe_load(f)

    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    """
    Checks that a configuration has every section and setting the runner needs.

    Raises:
        KeyError: If a required section or setting is missing.
        ValueError: If the number of runs or episodes is not positive.
    """
    if not isinstance(config, dict):
        raise ValueError("The configuration must be a mapping of sections.")

    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise KeyError(
                f"The required section '{section}' was not found. "
                "Please ensure it is defined in your config.yaml file."
            )

    exp_settings = config['experiment_settings']
    for key in ('num_runs', 'num_episodes'):
        if key not in exp_settings:
            raise KeyError(f"The required key '{key}' was not found in 'experiment_settings'.")
        if int(exp_settings[key]) < 1:
            raise ValueError(f"'experiment_settings.{key}' must be at least 1, got {exp_settings[key]}.")

    for section in ('environment_settings', 'agent_settings'):
        if 'class' not in config[section]:
            raise KeyError(f"The required key 'class' was not found in '{section}'.")


def add_file_handler_to_logger(results_path: str) -> logging.Handler:
    """Adds a file handler to the root logger to save logs to a specified directory."""
    log_filename = os.path.join(results_path, 'experiment_log.log')

    logger = logging.getLogger()

    # Match the console format
    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    file_handler = logging.FileHandler(log_filename)
    file_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logging.info(f"Logging is now also being saved to: {log_filename}")
    return file_handler


def _instantiate(module, base_class: type, class_config: dict, common_params: dict, kind: str):
    """
    Instantiates the class named in `class_config` from `module`.

    The class's constructor signature is inspected so that a configuration
    missing a required parameter fails with a message naming it, and so that
    common parameters the class does not accept are silently dropped.
    """
    class_name = class_config['class']
    class_params = class_config.get('params') or {}

    # Common parameters (like rng) are injected, config parameters take precedence
    full_params = {**common_params, **class_params}

    Class = getattr(module, class_name, None)
    if not (inspect.isclass(Class) and issubclass(Class, base_class)):
        raise ValueError(f"{kind.capitalize()} class '{class_name}' not found in the '{module.__name__}' module.")

    sig = inspect.signature(Class.__init__)

    required_params = {
        param.name for param in sig.parameters.values()
        if param.name != 'self' and param.default == inspect.Parameter.empty
    }

    missing_params = required_params - set(full_params.keys())
    if missing_params:
        raise TypeError(
            f"Error creating {kind} '{class_name}'. "
            f"The configuration is missing the following required parameters: {sorted(missing_params)}. "
            f"Please add them to the 'params' section of the {kind} in your config.yaml."
        )

    valid_params = {k: v for k, v in full_params.items() if k in sig.parameters}

    return Class(**valid_params)


def create_environment(env_config: dict, common_params: dict) -> BaseEnvironment:
    """
    Factory function to create an environment instance from its configuration.

    Args:
        env_config (dict): The 'environment_settings' slice of the config with
                           the environment's 'class' and 'params'.
        common_params (dict): Parameters shared by all environments (e.g., rng).

    Raises:
        ValueError: If the class is not an environment defined in `engine`.
        TypeError: If the configuration is missing required parameters.
    """
    return _instantiate(engine, BaseEnvironment, env_config, common_params, "environment")


def create_agent(agent_config: dict, common_params: dict) -> agents.BaseAgent:
    """
    Factory function to create an agent instance from its configuration.

    Args:
        agent_config (dict): The 'agent_settings' slice of the config with the
                             agent's 'class' and 'params'.
        common_params (dict): Parameters shared by all agents (e.g., action_space,
                              state_space, rng).

    Raises:
        ValueError: If the class is not an agent exported by the `agents` package.
        TypeError: If the configuration is missing required parameters.
    """
    return _instantiate(agents, agents.BaseAgent, agent_config, common_params, "agent")


def _trajectory_row(experiment_num: int, episode_num: int, step_num: int, state_old, action,
                    state_new, reward, cum_reward, terminal: bool) -> np.ndarray:
    # Use -1 as a placeholder for unavailable data
    row = np.full(len(TRAJECTORY_LOG_COLUMN_MAP), -1.0)
    row[TRAJECTORY_LOG_COLUMN_MAP['experiment_num']] = experiment_num
    row[TRAJECTORY_LOG_COLUMN_MAP['episode_num']] = episode_num
    row[TRAJECTORY_LOG_COLUMN_MAP['step_num']] = step_num
    if state_old is not None:
        row[TRAJECTORY_LOG_COLUMN_MAP['state_old']] = state_old
    if action is not None:
        row[TRAJECTORY_LOG_COLUMN_MAP['action']] = action
    row[TRAJECTORY_LOG_COLUMN_MAP['state_new']] = state_new
    if reward is not None:
        row[TRAJECTORY_LOG_COLUMN_MAP['reward']] = reward
    row[TRAJECTORY_LOG_COLUMN_MAP['cum_reward']] = cum_reward
    row[TRAJECTORY_LOG_COLUMN_MAP['terminal']] = int(terminal)
    return row


def run_episode(env: BaseEnvironment, agent: agents.BaseAgent, max_steps: Optional[int] = None,
                trajectory_log: Optional[list] = None, experiment_num: int = 0,
                episode_num: int = 0) -> EpisodeResult:
    """
    Runs a single episode from start to finish.

    The environment is started, the agent chooses its first action, and then
    environment and agent steps alternate until the environment reports a
    terminal state.

    Args:
        env (BaseEnvironment): The environment instance.
        agent (BaseAgent): The agent instance.
        max_steps (int, optional): If given, the episode is cut off after this
            many steps even if no terminal state was reached. By default
            episodes run until termination.
        trajectory_log (list, optional): If given, one row per step (plus one
            for the initial state) is appended, laid out according to
            TRAJECTORY_LOG_COLUMN_MAP.
        experiment_num (int): The current experiment run number (for logging).
        episode_num (int): The current episode number (for logging).

    Returns:
        EpisodeResult: The (total_reward, step_count) of the episode.
    """
    if max_steps is not None and max_steps < 1:
        raise ValueError(f"max_steps must be at least 1, got {max_steps}.")

    obs = env.start()
    action = agent.start(obs)
    terminal = env.is_terminal()

    total_reward = 0.0
    step_count = 0

    if trajectory_log is not None:
        trajectory_log.append(_trajectory_row(experiment_num, episode_num, step_count, None, None,
                                              obs, None, total_reward, terminal))

    while not terminal:
        if max_steps is not None and step_count >= max_steps:
            logging.warning(
                "Episode %d of run %d truncated after %d steps without reaching a terminal state.",
                episode_num, experiment_num, step_count
            )
            break

        old_obs = obs
        obs, reward, terminal = env.step(action)
        taken_action = action
        action = agent.step(obs, reward, terminal)

        total_reward += reward
        step_count += 1

        if trajectory_log is not None:
            trajectory_log.append(_trajectory_row(experiment_num, episode_num, step_count, old_obs,
                                                  taken_action, obs, reward, total_reward, terminal))

    return EpisodeResult(total_reward, step_count)


def simulate(config: dict, log_trajectory: bool = False) -> tuple:
    """
    Runs every run and episode defined by a configuration.

    A single random generator is built from 'run_seed' and shared by the
    environment and the agent, which are created once. Learning agents are
    reset at the start of every run, so runs are independent of each other
    while the agent's Q-table persists across the episodes of a run.

    Args:
        config (dict): A validated experiment configuration.
        log_trajectory (bool): If True, a detailed per-step log is collected.

    Returns:
        A tuple containing:
        - rewards (np.ndarray): Total reward per episode, shape (num_runs, num_episodes).
        - steps (np.ndarray): Steps per episode, shape (num_runs, num_episodes).
        - trajectory_log (list): Per-step rows, empty unless `log_trajectory`.
    """
    validate_config(config)

    exp_settings = config['experiment_settings']
    num_runs = int(exp_settings['num_runs'])
    num_episodes = int(exp_settings['num_episodes'])
    max_steps = exp_settings.get('max_steps')

    seed = exp_settings.get('run_seed')
    if seed is not None:
        logging.info("Running experiment with seed: %d", seed)
    else:
        logging.warning("'run_seed' not found in config. The experiment will run with a non-reproducible random seed.")
    rng = np.random.default_rng(seed)

    env = create_environment(config['environment_settings'], {'rng': rng})

    common_agent_params = {
        'action_space': env.action_space,
        'state_space': env.state_space,
        'rng': rng,
    }
    agent = create_agent(config['agent_settings'], common_agent_params)

    rewards = np.zeros((num_runs, num_episodes))
    steps = np.zeros((num_runs, num_episodes), dtype=np.int64)
    trajectory_log = []

    # --- Experiment Loop (for multiple independent runs) ---
    for experiment_num in tqdm(range(num_runs), desc="Experiment runs"):
        if isinstance(agent, agents.LearningAgent):
            agent.reset()

        # --- Episode Loop ---
        for episode_num in tqdm(range(num_episodes), desc=f"Episodes for run {experiment_num + 1}", leave=False):
            result = run_episode(env, agent, max_steps=max_steps,
                                 trajectory_log=trajectory_log if log_trajectory else None,
                                 experiment_num=experiment_num, episode_num=episode_num)
            rewards[experiment_num, episode_num] = result.total_reward
            steps[experiment_num, episode_num] = result.step_count

        logging.info(
            "Run %d/%d finished: mean reward %.3f, mean episode length %.2f",
            experiment_num + 1, num_runs,
            rewards[experiment_num].mean(), steps[experiment_num].mean()
        )

    return rewards, steps, trajectory_log


def run_experiment(config_file_path: str, base_output_dir: Optional[str] = None, log_trajectory: bool = False) -> str:
    """
    Main function to run an experiment defined by a config file and save its results.

    Args:
        config_file_path (str): Path to the YAML experiment configuration file.
        base_output_dir (str, optional): The base directory where the results
            folder for this specific run will be created. If None, it falls
            back to 'results_dir' from the config file.
        log_trajectory (bool): If True, a detailed per-step log is saved.

    Returns:
        str: The path to the directory where results for this run were saved.
    """
    config = load_config(config_file_path)
    exp_settings = config['experiment_settings']

    # Create a unique, timestamped directory for this experiment's results
    timestamp = datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
    experiment_name = exp_settings.get('name', 'experiment')
    run_dir_name = f"{experiment_name}_{timestamp}"

    if base_output_dir:
        root_results_dir = base_output_dir
    else:
        logging.warning("No base_output_dir provided. Falling back to 'results_dir' from config file.")
        root_results_dir = exp_settings.get('results_dir', 'results')

    results_path = Path(root_results_dir) / run_dir_name
    os.makedirs(results_path, exist_ok=True)

    file_handler = add_file_handler_to_logger(str(results_path))
    try:
        logging.info("Results for this run will be saved in: %s", results_path)

        rewards, steps, trajectory_log = simulate(config, log_trajectory=log_trajectory)

        rewards_path = os.path.join(results_path, 'rewards_per_episode.npz')
        np.savez_compressed(rewards_path, rewards=rewards)
        logging.info("Rewards per episode saved to %s.", rewards_path)

        steps_path = os.path.join(results_path, 'steps_per_episode.npz')
        np.savez_compressed(steps_path, steps=steps)
        logging.info("Steps per episode saved to %s.", steps_path)

        if log_trajectory:
            save_array = np.array([tuple(row) for row in trajectory_log], dtype=TRAJECTORY_LOG_DTYPE)
            traj_path = os.path.join(results_path, 'trajectory_log.npz')
            np.savez_compressed(traj_path, trajectory=save_array)
            logging.info(f"Trajectory log saved to {traj_path}. Shape: {save_array.shape}")

        # Save the configuration file used for this run for full reproducibility.
        shutil.copy(config_file_path, results_path)
        saved_config_path = os.path.join(results_path, os.path.basename(config_file_path))
        logging.info("Configuration file copied for reproducibility to %s", saved_config_path)
    finally:
        logging.getLogger().removeHandler(file_handler)
        file_handler.close()

    return str(results_path)
