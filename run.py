"""
One-button runner for the dice decision simulator.

Usage:
    python run.py decisions.json

    # With a simulation config:
    python run.py decisions.json --config simulation_config.json

    # Override iterations and write histograms:
    python run.py decisions.json --iterations 200000 --output hist.csv

Everything else comes from simulation_config.json when it exists.
"""

import sys
import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path

import pandas as pd

from dicesim.config import SimulationConfig, load_decisions_from_json, load_simulation_config
from dicesim.diagnostics import format_batch
from dicesim.errors import DiceSimError
from dicesim.parallel import shutdown_pool
from dicesim.pipeline import run_from_config

# Defaults: edit these if your file layout changes
DEFAULT_SIMULATION_CONFIG = "simulation_config.json"


def main():
    parser = argparse.ArgumentParser(
        description="Run every decision in a JSON file"
    )
    parser.add_argument("decisions_path", help="Path to decisions JSON")
    parser.add_argument(
        "--config", default=DEFAULT_SIMULATION_CONFIG,
        help=f"Simulation config path (default: {DEFAULT_SIMULATION_CONFIG}, skipped if missing)"
    )
    parser.add_argument(
        "--iterations", "-n", type=int, default=None,
        help="Iterations per decision (overrides config)"
    )
    parser.add_argument(
        "--output", "-o", default=None,
        help="Output CSV path (default: histograms_{stem}.csv)"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        if Path(args.config).exists():
            sim_config = load_simulation_config(args.config)
            print(f"Config: {args.config}")
        else:
            sim_config = SimulationConfig()
            print("Config: defaults")
        if args.iterations is not None:
            sim_config = replace(sim_config, iterations=args.iterations)
        named = load_decisions_from_json(args.decisions_path)
    except (DiceSimError, ValueError, json.JSONDecodeError) as e:
        print(f"\nERROR: {e}")
        sys.exit(1)

    print(f"  Iterations: {sim_config.iterations:,}")
    print(f"  Mode: {sim_config.mode}")
    print(f"  Denominator: {sim_config.denominator}")
    print(f"\nDecisions: {args.decisions_path} ({len(named)})")
    for name, decision in named:
        print(f"  {name}: {decision}")
    print()

    names = [n for n, _ in named]
    decisions = [d for _, d in named]
    try:
        results = run_from_config(decisions, sim_config)
    finally:
        shutdown_pool()

    print()
    print(format_batch(results, decisions, names))

    # Save histograms
    stem = Path(args.decisions_path).stem
    output_path = args.output or f"histograms_{stem}.csv"
    frames = []
    for name, result in zip(names, results):
        frame = result.to_frame()
        frame.insert(0, 'name', name)
        frames.append(frame)
    if frames:
        pd.concat(frames, ignore_index=True).to_csv(output_path, index=False)
        print(f"\nHistograms saved to: {output_path}")


if __name__ == "__main__":
    main()
