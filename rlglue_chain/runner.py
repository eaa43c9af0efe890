"""
Executes a single experiment based on a specified configuration file.

This script is the "worker" in the experimental setup. It is typically
invoked by the parallel runner ('rlglue_chain.parallel_runner'), but can also
be run directly for a single configuration.

Usage Examples:
  # Run a single experiment, saving results under 'results/'
  python -m rlglue_chain.runner rlglue_chain/configs/config.yaml --result-dir results

  # Also save the per-step trajectory log
  python -m rlglue_chain.runner rlglue_chain/configs/config.yaml --log-trajectory
"""

import argparse
import logging
import sys
from pathlib import Path

from .experiment_runner import run_experiment


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Run a single experiment using a specified YAML configuration file.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "config_file",
        type=Path,
        help="The path to the .yaml configuration file for the experiment."
    )

    parser.add_argument(
        "--result-dir",
        type=Path,
        default=None,
        help="The base directory where experiment results should be saved. "
             "Falls back to 'results_dir' from the config file."
    )

    parser.add_argument(
        "--log-trajectory",
        action="store_true",
        help="Save a per-step trajectory log alongside the episode results."
    )

    args = parser.parse_args(argv)

    # 'force=True' replaces handlers installed by anything imported earlier.
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stdout,
        force=True
    )

    if not args.config_file.is_file():
        logging.error(f"Configuration file not found at '{args.config_file}'")
        return 1

    results_path = run_experiment(
        config_file_path=str(args.config_file),
        base_output_dir=str(args.result_dir) if args.result_dir else None,
        log_trajectory=args.log_trajectory
    )

    print("=" * 50)
    print("Experiment finished successfully.")
    print(f"Results have been saved in: {results_path}")
    print("=" * 50)
    return 0


if __name__ == "__main__":
    sys.exit(main())
