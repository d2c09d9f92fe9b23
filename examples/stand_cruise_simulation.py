#!/usr/bin/env python3
"""
Double-Sampling Stand Cruise Simulation
=======================================

This example simulates a forest ownership made of many stands and studies
how well a two-stage cruise estimates total standing volume.

How This Script Works
---------------------
1. Simulates a population of stands (acres, age, true volume per acre)
2. Selects stands with probability proportional to sqrt(age) x acres
3. Lays out plots in each selected stand, one per ``--spacing`` acres
4. Estimates the ownership total with the Horvitz-Thompson estimator
5. Repeats the cruise many times to check bias and interval coverage

Usage
-----
    # One cruise plus a 500-trial study on 60 stands
    uv run python examples/stand_cruise_simulation.py --stands 60 --sample-size 10

    # Exact inclusion probabilities on a small ownership
    uv run python examples/stand_cruise_simulation.py --stands 12 --sample-size 4 \\
        --inclusion exact --joint exact

    # Write a debug log alongside the console output
    uv run python examples/stand_cruise_simulation.py --log-file logs/cruise.log

Output
------
The script prints the per-stand intermediate values for one cruise, the
population estimate with its confidence interval, and a summary of the
repeated-trial study.
"""

import argparse
import logging

import numpy as np
from rich.console import Console

from pyht import (
    HorvitzThompsonEstimator,
    SamplingDesign,
    display_estimate,
    display_simulation,
    run_simulation,
    setup_logging,
    simulate_population,
)

console = Console()


def run_single_cruise(population, design, rng):
    """
    Draw one two-stage sample and show the estimate.

    Parameters
    ----------
    population : Population
        Simulated stands.
    design : SamplingDesign
        Cruise design.
    rng : np.random.Generator
        Source of randomness.

    Returns
    -------
    PopulationEstimate
    """
    console.print("\n[bold]Single Cruise[/bold]")
    console.print("=" * 60)

    estimator = HorvitzThompsonEstimator(population, design, rng=rng)
    result = estimator.run_trial(rng)

    display_estimate(result.units_frame(), title="Sampled Stands", precision=4)
    display_estimate(result.to_frame(), title="Ownership Total")

    console.print(f"  True total:      {population.true_total:>15,.0f}")
    console.print(f"  Estimated total: {result.total:>15,.0f}")
    console.print(
        f"  {result.confidence:.0%} CI:          "
        f"[{result.lower:,.0f}, {result.upper:,.0f}]"
    )
    return result


def run_study(population, design, n_trials, seed, n_workers):
    """Repeat the cruise and summarize bias and coverage."""
    console.print(f"\n[bold]Simulation Study ({n_trials:,} trials)[/bold]")
    console.print("=" * 60)

    result = run_simulation(population, design, n_trials, seed=seed, n_workers=n_workers)
    display_simulation(result.summary(), console=console)
    return result


def main():
    """Main entry point - parse arguments and run the cruise."""
    parser = argparse.ArgumentParser(
        description="Simulate a two-stage PPS stand cruise"
    )
    parser.add_argument("--stands", type=int, default=60, help="Number of stands")
    parser.add_argument("--sample-size", "-n", type=int, default=10, help="Stands to cruise")
    parser.add_argument("--spacing", type=float, default=10.0, help="Acres per plot")
    parser.add_argument("--confidence", type=float, default=0.90)
    parser.add_argument(
        "--inclusion",
        choices=["monte_carlo", "analytic", "exact"],
        default="monte_carlo",
    )
    parser.add_argument(
        "--joint",
        choices=["approximate", "monte_carlo", "exact"],
        default="approximate",
    )
    parser.add_argument("--trials", type=int, default=500, help="Simulation trials")
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-file", help="Optional path for a debug log")
    parser.add_argument("--verbose", "-v", action="store_true")

    args = parser.parse_args()

    setup_logging(
        logging.DEBUG if args.verbose else logging.WARNING, log_file=args.log_file
    )

    rng = np.random.default_rng(args.seed)
    population = simulate_population(args.stands, rng)
    console.print(
        f"[cyan]Simulated {population.n_units} stands, "
        f"{population.total_size:,.0f} acres[/cyan]"
    )

    design = SamplingDesign(
        sample_size=args.sample_size,
        plot_spacing=args.spacing,
        confidence=args.confidence,
        inclusion_method=args.inclusion,
        joint_method=args.joint,
    )

    run_single_cruise(population, design, rng)
    run_study(population, design, args.trials, args.seed, args.workers)

    console.print("\n[green]Done![/green]")


if __name__ == "__main__":
    main()
