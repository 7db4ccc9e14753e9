"""
Configuration management for the dice decision simulator.

Simulation defaults, decision presets, and JSON loading utilities.
"""

import json
from copy import deepcopy
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Tuple

from .types import Decision
from .stats.histogram import DENOMINATORS
from .simulation.engine import DEFAULT_BATCH_SIZE

SIMULATION_CONFIG_VERSION = "1.0"

MODES: Tuple[str, ...] = ("serial", "threads", "worker")


# =============================================================================
# Simulation Defaults
# =============================================================================

@dataclass
class SimulationConfig:
    """
    Settings shared by every run of a batch.

    Attributes:
        iterations: Monte Carlo iterations per decision
        worker_threads: Sampling threads (None = host CPU count)
        batch_size: Iterations rolled per vectorized batch
        denominator: "iterations" (misses count as 0) or "hits" (conditional on trigger)
        mode: "serial", "threads" (in-process pool) or "worker" (worker processes)
        max_workers: Worker processes used in "worker" mode
    """
    iterations: int = 1_000_000
    worker_threads: Optional[int] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    denominator: str = "iterations"
    mode: str = "threads"
    max_workers: int = 2

    def __post_init__(self) -> None:
        if self.iterations < 0:
            raise ValueError(
                f"SimulationConfig.iterations must be non-negative, got {self.iterations}"
            )
        if self.worker_threads is not None and self.worker_threads < 1:
            raise ValueError(
                f"SimulationConfig.worker_threads must be positive, got {self.worker_threads}"
            )
        if self.batch_size < 1:
            raise ValueError(
                f"SimulationConfig.batch_size must be positive, got {self.batch_size}"
            )
        if self.denominator not in DENOMINATORS:
            raise ValueError(
                f"SimulationConfig.denominator must be one of {DENOMINATORS}, "
                f"got {self.denominator!r}"
            )
        if self.mode not in MODES:
            raise ValueError(f"SimulationConfig.mode must be one of {MODES}, got {self.mode!r}")
        if self.max_workers < 1:
            raise ValueError(
                f"SimulationConfig.max_workers must be positive, got {self.max_workers}"
            )


DEFAULT_SIMULATION_CONFIG = SimulationConfig()


# =============================================================================
# Decision Presets
# =============================================================================

DECISION_PRESET_SPECS: Dict[str, Dict[str, Any]] = {
    # d20 attack against AC 12, longsword-style damage on a hit
    'attack_d20': {
        'comparator': '>=', 'decision_dice': '1d20', 'threshold': 12, 'dice': '1d10',
    },
    # Natural 20 only, critical damage
    'crit_only': {
        'comparator': '=', 'decision_dice': '1d20', 'threshold': 20, 'dice': '2d10',
    },
    # Failed save (roll under DC 14) takes the full fireball
    'failed_save': {
        'comparator': '<', 'decision_dice': '1d20', 'threshold': 14, 'dice': '8d6',
    },
    # Percentile trigger for a mixed damage pool
    'percentile_proc': {
        'comparator': '<=', 'decision_dice': '1d100', 'threshold': 25, 'dice': '2d6,1d4',
    },
    # Unconditional roll, plain histogram of the payoff dice
    'plain_3d6': {
        'comparator': '>=', 'decision_dice': '', 'threshold': 0, 'dice': '3d6',
    },
}


def get_preset(name: str) -> Decision:
    """
    Build a preset decision by name.

    Raises:
        ValueError: If the preset is unknown
    """
    if name not in DECISION_PRESET_SPECS:
        raise ValueError(
            f"Unknown preset '{name}'. Available: {sorted(DECISION_PRESET_SPECS)}"
        )
    return decision_from_dict(DECISION_PRESET_SPECS[name])


# =============================================================================
# JSON Loading Utilities
# =============================================================================

def decision_from_dict(data: Dict[str, Any]) -> Decision:
    """
    Build a Decision from a JSON-style dict.

    Expected keys: comparator, decision_dice, threshold, dice.

    Raises:
        InvalidNotation: If dice text or comparator do not parse
        ValueError: If a key is missing or the threshold is not a finite number
    """
    missing = [k for k in ('comparator', 'decision_dice', 'threshold', 'dice') if k not in data]
    if missing:
        raise ValueError(f"Decision entry missing keys: {missing}")
    return Decision.from_text(
        comparator=str(data['comparator']),
        decision_dice=str(data['decision_dice']),
        threshold=data['threshold'],
        dice=str(data['dice']),
    )


def load_decisions_from_json(path: str) -> List[Tuple[str, Decision]]:
    """
    Load named decisions from a JSON file.

    Expected format:
    {
        "decisions": [
            {"name": "attack", "comparator": ">=", "decision_dice": "1d20",
             "threshold": 12, "dice": "1d10"},
            {"preset": "failed_save"}
        ]
    }

    A bare list of entries is accepted as well. Entries without a name are
    named after their position.

    Returns:
        List of (name, Decision) in file order
    """
    with open(path, 'r') as f:
        data = json.load(f)

    entries = data.get('decisions', []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ValueError(f"{path}: 'decisions' must be a list")

    decisions = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError(f"{path}: decision #{i + 1} must be an object")
        if 'preset' in entry:
            name = entry.get('name', entry['preset'])
            decisions.append((name, get_preset(entry['preset'])))
        else:
            name = entry.get('name', f"decision_{i + 1}")
            decisions.append((name, decision_from_dict(entry)))
    return decisions


def decisions_to_json(decisions: List[Tuple[str, Decision]], path: str) -> None:
    """Write named decisions in the format read by load_decisions_from_json()."""
    data = {
        'decisions': [
            {
                'name': name,
                'comparator': decision.comparator.symbol,
                'decision_dice': str(decision.decision_dice),
                'threshold': decision.threshold,
                'dice': str(decision.dice),
            }
            for name, decision in decisions
        ]
    }
    with open(path, 'w') as f:
        json.dump(data, f, indent=2)


def _validate_version(config: Dict[str, Any]) -> None:
    """Validate simulation config version."""
    version = config.get('version', SIMULATION_CONFIG_VERSION)
    if version != SIMULATION_CONFIG_VERSION:
        raise ValueError(
            f"Unsupported simulation config version '{version}'. "
            f"Expected '{SIMULATION_CONFIG_VERSION}'."
        )


def load_simulation_config(path: str) -> SimulationConfig:
    """
    Load simulation settings from a JSON file.

    Expected format:
    {
        "version": "1.0",
        "simulation": {"iterations": 1000000, "mode": "threads", "denominator": "hits"}
    }

    Unknown keys under "simulation" are rejected.

    Raises:
        ValueError: If the version is unsupported or a setting is invalid
    """
    with open(path, 'r') as f:
        config = json.load(f)

    _validate_version(config)
    settings = deepcopy(config.get('simulation', {}))
    unknown = set(settings) - set(SimulationConfig.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown simulation settings: {sorted(unknown)}")
    return SimulationConfig(**settings)
