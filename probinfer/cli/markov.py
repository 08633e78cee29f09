"""
Markov chain CLI commands.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..io import load_chain, save_json
from ..markov import analyze_absorbing, run_simulations, sequence_statistics, stationary_distribution
from .errors import handle_cli_error, validate_file_exists

console = Console()

markov_app = typer.Typer(
    name="markov",
    help="Markov chain analysis commands"
)


def _flag(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


@markov_app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    chain_file: Path = typer.Argument(..., help="Chain JSON file"),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the analysis as JSON"
    )
):
    """Classify a chain and, if it has absorbing states, analyze absorption."""
    try:
        chain = load_chain(validate_file_exists(chain_file, "chain file"))
        chain.ensure_valid()
        summary = chain.summary()

        console.print(Panel.fit(
            f"[bold]Chain: {chain_file}[/bold]\n"
            f"States: {summary['state_count']}\n"
            f"Irreducible: {_flag(summary['is_irreducible'])}\n"
            f"Aperiodic: {_flag(summary['is_aperiodic'])}\n"
            f"Ergodic: {_flag(summary['is_ergodic'])}\n"
            f"Absorbing states: {', '.join(summary['absorbing_states']) or '-'}",
            border_style="blue"
        ))

        results = {'summary': summary}

        if summary['absorbing_states'] and len(summary['absorbing_states']) < chain.n_states:
            analysis = analyze_absorbing(chain)
            results['absorbing'] = analysis.to_dict()

            table = Table(title="Absorption")
            table.add_column("From", style="cyan")
            for target in analysis.absorbing_states:
                table.add_column(f"P({target})", style="green")
            table.add_column("Expected steps", style="magenta")
            for i, start in enumerate(analysis.transient_states):
                row = [f"{analysis.absorption_probabilities[i, j]:.4f}"
                       for j in range(len(analysis.absorbing_states))]
                table.add_row(start, *row, f"{analysis.expected_steps[i]:.4f}")
            console.print(table)

        if output_file:
            save_json(results, output_file)
            console.print(f"[green]Results saved to: {output_file}[/green]")

    except Exception as e:
        handle_cli_error(e, "markov analyze", ctx.meta.get("debug", False))


@markov_app.command("stationary")
def stationary_command(
    ctx: typer.Context,
    chain_file: Path = typer.Argument(..., help="Chain JSON file"),
    method: Optional[str] = typer.Option(
        None, "--method", "-m", help="iterative, power or eigenvalue"
    ),
    tolerance: Optional[float] = typer.Option(None, "--tolerance", help="Convergence tolerance"),
    max_iterations: Optional[int] = typer.Option(None, "--max-iter", help="Maximum number of iterations"),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the distribution as JSON"
    )
):
    """Compute the stationary distribution of a chain."""
    try:
        chain = load_chain(validate_file_exists(chain_file, "chain file"))
        result = stationary_distribution(chain, tolerance, max_iterations, method)

        table = Table(title=f"Stationary distribution ({result.method})")
        table.add_column("State", style="cyan")
        table.add_column("Probability", style="green")
        for state, p in result.as_dict().items():
            table.add_row(state, f"{p:.6f}")
        console.print(table)

        if result.converged:
            console.print(f"[green]Converged after {result.iterations} iterations[/green]")
        else:
            console.print(f"[yellow]Warning: did not converge after {result.iterations} iterations "
                          f"(max difference {result.max_difference:.3e})[/yellow]")

        if output_file:
            save_json(result.to_dict(), output_file)
            console.print(f"[green]Results saved to: {output_file}[/green]")

    except Exception as e:
        handle_cli_error(e, "markov stationary", ctx.meta.get("debug", False))


@markov_app.command("simulate")
def simulate_command(
    ctx: typer.Context,
    chain_file: Path = typer.Argument(..., help="Chain JSON file"),
    initial_state: str = typer.Argument(..., help="Start state"),
    steps: int = typer.Option(100, "--steps", "-n", help="Number of transitions"),
    runs: int = typer.Option(1, "--runs", help="Number of independent simulations"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write sequences and statistics as JSON"
    )
):
    """Simulate a chain and report visit statistics."""
    try:
        chain = load_chain(validate_file_exists(chain_file, "chain file"), random_state=seed)

        if runs > 1:
            results = run_simulations(chain, initial_state, steps, runs, random_state=seed)
            frequencies = results['mean_frequencies']
            title = f"Mean visit frequencies over {runs} runs"
        else:
            sequence = chain.simulate(initial_state, steps)
            results = sequence_statistics(chain, sequence)
            results['sequence'] = sequence
            frequencies = results['frequencies']
            title = f"Visit frequencies ({steps} steps)"
            console.print(f"[dim]Entropy: {results['entropy']:.4f} bits "
                          f"(max {results['max_entropy']:.4f})[/dim]")

        table = Table(title=title)
        table.add_column("State", style="cyan")
        table.add_column("Frequency", style="green")
        for state, f in frequencies.items():
            table.add_row(state, f"{f:.4f}")
        console.print(table)

        if output_file:
            save_json(results, output_file)
            console.print(f"[green]Results saved to: {output_file}[/green]")

    except Exception as e:
        handle_cli_error(e, "markov simulate", ctx.meta.get("debug", False))
