"""
Orchestrates running multiple experiments defined by .yaml files in parallel.

This script discovers experiment configuration files in a directory and
spawns one worker process per file, each running 'rlglue_chain.runner'.
Every worker builds its own environment, agent and random generator, so no
state is shared between experiments.

A thread pool bounds the number of concurrent workers, the standard output
and error of each worker are captured into log files, and a summary of
successful and failed jobs is logged at the end.

Usage Examples:
  # Run all configs in a directory using default CPU count
  python -m rlglue_chain.parallel_runner ./configs -o ./my_run_results

  # Run recursively with a specific number of parallel jobs
  python -m rlglue_chain.parallel_runner ./configs -r --jobs 8
"""

import argparse
import logging
import os
import subprocess
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Optional


def setup_logging(run_directory: Path):
    """Configures the root logger to output to console and a file."""
    log_file = run_directory / "parallel_runner.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(logging.INFO)

    # Clear any existing handlers to avoid duplicate logs.
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter('%(asctime)s - [PARALLEL_RUNNER] - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)


def build_command(config_path: Path, result_dir: Path, log_trajectory: bool = False) -> list:
    """Returns the command line that runs a single experiment in a fresh interpreter."""
    cmd = [
        sys.executable,
        "-m", "rlglue_chain.runner",
        str(config_path),
        "--result-dir", str(result_dir)
    ]
    if log_trajectory:
        cmd.append("--log-trajectory")
    return cmd


def run_one(config_path: Path, run_directory: Path, log_trajectory: bool = False) -> tuple:
    """
    Executes a single experiment subprocess and captures its output.

    Args:
        config_path: Path to the .yaml configuration file.
        run_directory: The unique top-level directory for this entire parallel run.
        log_trajectory: Forwarded to the worker.

    Returns:
        A tuple containing:
            - str: The name of the configuration (file name without extension).
            - int: The exit code of the subprocess (0 for success).

    Side Effects:
        Writes the standard output and error of the subprocess to
        'run_logs/{config_name}.out' and 'run_logs/{config_name}.err'.
    """
    config_name = Path(config_path).stem

    subprocess_log_dir = run_directory / "run_logs"
    subprocess_log_dir.mkdir(parents=True, exist_ok=True)

    stdout_path = subprocess_log_dir / f"{config_name}.out"
    stderr_path = subprocess_log_dir / f"{config_name}.err"

    cmd = build_command(config_path, run_directory / "run_results", log_trajectory)

    logging.info(f"Starting: {config_name}")

    with open(stdout_path, "wb") as out, open(stderr_path, "wb") as err:
        proc = subprocess.Popen(cmd, stdout=out, stderr=err)
        return_code = proc.wait()

    return config_name, return_code


def discover_configs(config_directory: Path, recursive: bool = False) -> list:
    """Returns the sorted, resolved paths of every .yaml file in a directory."""
    pattern_paths = config_directory.rglob("*.yaml") if recursive else config_directory.glob("*.yaml")
    return sorted(p.resolve() for p in pattern_paths)


def run_parallel_experiments(config_directory: Path, run_directory: Path, jobs: Optional[int] = None,
                             recursive: bool = False, log_trajectory: bool = False) -> tuple:
    """
    Discovers and runs all experiments in parallel using a thread pool.

    Args:
        config_directory: Path to the directory containing .yaml config files.
        run_directory: Path to the top-level directory for saving results.
        jobs: The maximum number of experiments to run at once. If None,
              it defaults to the system's CPU count.
        recursive: If True, search for .yaml files in subdirectories as well.
        log_trajectory: If True, every worker saves its trajectory log.

    Returns:
        tuple: The number of (successful, failed) experiments.
    """
    # os.cpu_count() may return None
    jobs = jobs or max(1, (os.cpu_count() or 1))

    config_file_paths = discover_configs(config_directory, recursive)

    if not config_file_paths:
        logging.error(f"No .yaml configs found in: {config_directory}")
        return 0, 0

    # Don't spawn more workers than tasks
    jobs = max(1, min(jobs, len(config_file_paths)))

    logging.info(f"Discovered {len(config_file_paths)} configs. Running with jobs={jobs}.")

    ok, fail = 0, 0
    with ThreadPoolExecutor(max_workers=jobs) as pool:
        futures = {
            pool.submit(run_one, config_file_path, run_directory, log_trajectory): config_file_path
            for config_file_path in config_file_paths
        }

        for future in as_completed(futures):
            config_file_path = futures[future]
            try:
                name, return_code = future.result()
            except OSError:
                logging.exception(f"Exception while running {config_file_path}")
                fail += 1
                continue

            if return_code == 0:
                logging.info(f"FINISHED: {name} (0)")
                ok += 1
            else:
                log_file_path = run_directory / "run_logs" / f"{name}.err"
                logging.error(f"FAILED: {name} (exit {return_code}) - see {log_file_path}.")
                fail += 1

    logging.info(f"Done. Success: {ok}, Failed: {fail}")
    return ok, fail


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Run a series of experiments from .yaml configuration files in parallel."
    )
    parser.add_argument(
        "config_directory",
        type=Path,
        help="The path to the directory containing the .yaml configuration files."
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=Path("results"),
        help="Base directory to save the unique run folder."
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        help="Number of parallel jobs to run. Defaults to the JOBS env var or the system CPU count."
    )
    parser.add_argument(
        "-r", "--recursive",
        action="store_true",
        help="If set, search for .yaml files in subdirectories recursively."
    )
    parser.add_argument(
        "--log-trajectory",
        action="store_true",
        help="Save per-step trajectory logs for every experiment."
    )
    args = parser.parse_args(argv)

    timestamp = datetime.now().strftime('%Y-%m-%d_%H-%M-%S')
    unique_run_dir = args.output / f"parallel_run_{timestamp}"

    setup_logging(unique_run_dir)

    # The command-line flag takes priority over the environment
    num_jobs = args.jobs
    if num_jobs is None:
        jobs_env = os.getenv("JOBS")
        if jobs_env and jobs_env.isdigit():
            num_jobs = int(jobs_env)

    _, fail = run_parallel_experiments(
        config_directory=args.config_directory,
        run_directory=unique_run_dir,
        jobs=num_jobs,
        recursive=args.recursive,
        log_trajectory=args.log_trajectory
    )
    return 1 if fail else 0


if __name__ == "__main__":
    sys.exit(main())
