"""
Generates a suite of .yaml configuration files for experiments.

This script automates the creation of configuration files from a set of
pre-defined agent profiles and a list of desired (agent, chain size) pairs.
It uses a base template for the common experiment settings and injects the
agent and environment configuration of each pair.

Usage:
  # Generate all defined configs into the 'configs/generated/' directory
  python -m rlglue_chain.config_generator --output-dir configs/generated/
"""

import argparse
import copy
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

# =============================================================================
# 1. DEFINE THE BASE CONFIGURATION
# All settings that are THE SAME across all experiment files.
# =============================================================================
BASE_CONFIG: dict[str, Any] = {
    "experiment_settings": {
        # The 'name' will be generated automatically for each experiment.
        "num_runs": 10,
        "num_episodes": 200,
        "run_seed": 42,
        "max_steps": None,
        "results_dir": "results"  # Used only if no --result-dir is given to the runner
    },
    "environment_settings": {
        "class": "MarkovChain",
        "params": {
            "size": 10
        }
    }
}

# =============================================================================
# 2. DEFINE THE AGENT PROFILES
# A blueprint for each agent. This is where you would modify an agent's
# parameters (e.g., gamma, learning_rate) for all experiments.
# =============================================================================
AGENT_PROFILES = {
    "QLearningAgent": {
        "class": "QLearningAgent",
        "params": {
            "learning_rate": 0.1,
            "gamma": 0.9,
            "epsilon": 0.1
        }
    },
    "QLearningAgent_Greedy": {
        "class": "QLearningAgent",
        "params": {
            "learning_rate": 0.1,
            "gamma": 0.9,
            "epsilon": 0.0
        }
    },
    "QLearningAgent_Optimistic": {
        "class": "QLearningAgent",
        "params": {
            "learning_rate": 0.1,
            "gamma": 0.9,
            "epsilon": 0.0,
            "initial_Q_value": 1.0
        }
    },
    "RandomAgent": {
        # Baselines might have no parameters defined in the config.
        "class": "RandomAgent",
    },
}

# =============================================================================
# 3. DEFINE THE EXPERIMENTS
# A list of tuples (agent_profile, chain_size). One .yaml file is generated
# for each tuple.
# =============================================================================
EXPERIMENTS = [
    ("QLearningAgent", 10),
    ("QLearningAgent", 20),
    ("QLearningAgent_Greedy", 10),
    ("QLearningAgent_Optimistic", 10),
    ("RandomAgent", 10),
    ("RandomAgent", 20),
]


def build_config(agent_name: str, chain_size: int) -> dict:
    """
    Builds the configuration of a single experiment.

    Raises:
        KeyError: If `agent_name` is not in AGENT_PROFILES.
    """
    # deepcopy keeps the base config untouched between experiments
    config = copy.deepcopy(BASE_CONFIG)

    experiment_name = f"{agent_name}_chain{chain_size}"
    config["experiment_settings"]["name"] = experiment_name
    config["comment"] = f"Auto-generated config for {agent_name} on a chain of size {chain_size}."
    config["environment_settings"]["params"]["size"] = chain_size
    config["agent_settings"] = copy.deepcopy(AGENT_PROFILES[agent_name])
    return config


def generate_configs(output_dir: Path, experiments: Optional[Iterable[tuple]] = None) -> list:
    """
    Generates and saves .yaml config files for all defined experiments.

    Args:
        output_dir (Path): The directory where the generated .yaml files will be saved.
        experiments (iterable, optional): (agent_profile, chain_size) pairs.
            Defaults to EXPERIMENTS.

    Returns:
        list: The paths of the written files.
    """
    logging.info(f"Generating configuration files in: {output_dir}")
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for agent_name, chain_size in (EXPERIMENTS if experiments is None else experiments):
        try:
            config = build_config(agent_name, chain_size)
        except KeyError as e:
            logging.error(f"Agent profile '{e.args[0]}' not found in AGENT_PROFILES. Skipping this experiment.")
            continue

        output_path = output_dir / f"config_{config['experiment_settings']['name']}.yaml"

        with open(output_path, 'w') as f:
            # sort_keys=False preserves the ordering of the dictionaries
            yaml.dump(config, f, sort_keys=False, indent=2)

        written.append(output_path)
        logging.info(f"  -> Saved {output_path.name}")

    logging.info(f"Successfully generated {len(written)} configuration files.")
    return written


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout,
        force=True
    )

    parser = argparse.ArgumentParser(
        description="Generate .yaml configuration files for a suite of experiments."
    )
    parser.add_argument(
        "-o", "--output-dir",
        dest="output_dir",
        type=Path,
        required=True,
        help="The directory where the generated .yaml files will be saved."
    )
    args = parser.parse_args()

    generate_configs(args.output_dir)
