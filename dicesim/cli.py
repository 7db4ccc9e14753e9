"""
Command-line interface for the dice decision simulator.
"""

import click
import json
import logging
from dataclasses import replace

import pandas as pd

from .types import Decision, always
from .errors import DiceSimError
from .config import (
    DECISION_PRESET_SPECS,
    MODES,
    SimulationConfig,
    get_preset,
    load_decisions_from_json,
    load_simulation_config,
)
from .notation.parser import parse
from .parallel.pool import shutdown_pool
from .pipeline import run_from_config
from .simulation.engine import run_decision_set
from .stats.histogram import DENOMINATORS, summarize
from .diagnostics import format_batch, format_result


def _parse_threshold(text: str):
    try:
        value = float(text)
    except ValueError:
        raise click.BadParameter(f"threshold must be a number, got {text!r}", param_hint="THRESHOLD")
    return int(value) if value.is_integer() else value


@click.command()
@click.argument('decision', nargs=-1)
@click.option(
    '--iterations', '-n',
    type=int,
    default=None,
    help='Monte Carlo iterations per decision (default: 1000000)'
)
@click.option(
    '--preset', '-p',
    type=click.Choice(sorted(DECISION_PRESET_SPECS)),
    multiple=True,
    help='Simulate a preset decision (repeatable)'
)
@click.option(
    '--decisions-file', '-f',
    type=click.Path(exists=True),
    help='JSON file of decisions to simulate'
)
@click.option(
    '--expression', '-e',
    type=str,
    multiple=True,
    help='Histogram a bare dice expression such as "3d6" (repeatable)'
)
@click.option(
    '--config', '-c',
    type=click.Path(exists=True),
    help='Simulation config JSON (settings below override it)'
)
@click.option(
    '--mode',
    type=click.Choice(list(MODES)),
    default=None,
    help='Execution mode: serial, threads (default) or worker'
)
@click.option(
    '--threads',
    type=int,
    default=None,
    help='Sampling threads (default: CPU count)'
)
@click.option(
    '--max-workers',
    type=int,
    default=None,
    help='Worker processes in worker mode (default: 2)'
)
@click.option(
    '--denominator',
    type=click.Choice(list(DENOMINATORS)),
    default=None,
    help='Divide counts by all iterations (default) or by hits only'
)
@click.option(
    '--sum', 'sum_decisions',
    is_flag=True,
    help='Also simulate the summed outcome of all decisions rolled together'
)
@click.option(
    '--output', '-o',
    type=click.Path(),
    help='Write histograms to CSV'
)
@click.option(
    '--json-output',
    type=click.Path(),
    help='Write results to JSON'
)
@click.option(
    '--verbose/--quiet', '-v/-q',
    default=False,
    help='Log progress'
)
def main(
    decision,
    iterations,
    preset,
    decisions_file,
    expression,
    config,
    mode,
    threads,
    max_workers,
    denominator,
    sum_decisions,
    output,
    json_output,
    verbose
):
    """
    Estimate the outcome distribution of conditional dice rolls.

    DECISION is DECISION_DICE COMPARATOR THRESHOLD DICE, e.g.

        dicesim 1d20 ">=" 12 1d10

    rolls 1d20 and, when the roll is at least 12, rolls 1d10 and records it.
    """
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Settings: config file, then command-line overrides
    overrides = {
        'iterations': iterations,
        'mode': mode,
        'worker_threads': threads,
        'max_workers': max_workers,
        'denominator': denominator,
    }
    try:
        sim_config = load_simulation_config(config) if config else SimulationConfig()
        sim_config = replace(sim_config, **{k: v for k, v in overrides.items() if v is not None})
    except ValueError as e:
        raise click.BadParameter(str(e))

    # Collect decisions
    named = []
    try:
        if decision:
            if len(decision) != 4:
                raise click.BadParameter(
                    "expected DECISION_DICE COMPARATOR THRESHOLD DICE",
                    param_hint="DECISION"
                )
            gate, op, threshold, payoff = decision
            named.append(("decision", Decision.from_text(op, gate, _parse_threshold(threshold), payoff)))
        for name in preset:
            named.append((name, get_preset(name)))
        if decisions_file:
            named.extend(load_decisions_from_json(decisions_file))
        for text in expression:
            named.append((text, always(parse(text))))
    except (DiceSimError, ValueError) as e:
        raise click.BadParameter(str(e))

    if not named:
        raise click.UsageError("Nothing to simulate: give a DECISION, --preset, --decisions-file or --expression")

    names = [n for n, _ in named]
    decisions = [d for _, d in named]

    click.echo(f"Simulating {len(decisions)} decision(s)...")
    click.echo(f"  Iterations: {sim_config.iterations:,}")
    click.echo(f"  Mode: {sim_config.mode}")
    click.echo(f"  Denominator: {sim_config.denominator}")

    try:
        results = run_from_config(decisions, sim_config)

        if sum_decisions and len(decisions) > 1:
            counts = run_decision_set(
                decisions, sim_config.iterations,
                parallel=False if sim_config.mode == "serial" else None,
                batch_size=sim_config.batch_size,
            )
            names.append("sum")
            results.append(summarize(counts, sim_config.iterations, sim_config.denominator))
    finally:
        shutdown_pool()

    click.echo("")
    if len(results) == 1:
        click.echo(format_result(results[0], decisions[0], names[0]))
    else:
        shown_decisions = decisions + ([None] if len(results) > len(decisions) else [])
        click.echo(format_batch(results, shown_decisions, names))

    if output:
        frames = []
        for name, result in zip(names, results):
            frame = result.to_frame()
            frame.insert(0, 'name', name)
            frames.append(frame)
        pd.concat(frames, ignore_index=True).to_csv(output, index=False)
        click.echo(f"\nHistograms saved to: {output}")

    if json_output:
        payload = {
            name: {**result.to_dict(), 'decision': str(d) if d is not None else None}
            for name, result, d in zip(names, results, decisions + [None])
        }
        with open(json_output, 'w') as f:
            json.dump(payload, f, indent=2)
        click.echo(f"Results saved to: {json_output}")


if __name__ == '__main__':
    main()
