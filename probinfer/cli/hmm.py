"""
Hidden Markov Model CLI commands.
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..hmm import forward, train, viterbi
from ..io import load_hmm, load_json, save_json
from .errors import UsageError, handle_cli_error, validate_file_exists

console = Console()

hmm_app = typer.Typer(
    name="hmm",
    help="Hidden Markov Model commands"
)


def split_symbols(items: List[str]) -> List[str]:
    """Accept both ``a b c`` and ``a,b,c``."""
    symbols = []
    for item in items:
        symbols.extend(s.strip() for s in item.split(',') if s.strip())
    return symbols


@hmm_app.command("forward")
def forward_command(
    ctx: typer.Context,
    model_file: Path = typer.Argument(..., help="HMM JSON file"),
    observations: List[str] = typer.Argument(..., help="Observation symbol ids"),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the result as JSON"
    )
):
    """Likelihood of an observation sequence (Forward algorithm)."""
    try:
        model = load_hmm(validate_file_exists(model_file, "model file"))
        result = forward(model, split_symbols(observations))

        console.print(Panel.fit(
            f"[bold]Forward[/bold]\n"
            f"Likelihood: {result.likelihood:.6g}\n"
            f"Log-likelihood: {result.log_likelihood:.6f}",
            border_style="blue"
        ))

        if output_file:
            save_json(result.to_dict(), output_file)
            console.print(f"[green]Results saved to: {output_file}[/green]")

    except Exception as e:
        handle_cli_error(e, "hmm forward", ctx.meta.get("debug", False))


@hmm_app.command("viterbi")
def viterbi_command(
    ctx: typer.Context,
    model_file: Path = typer.Argument(..., help="HMM JSON file"),
    observations: List[str] = typer.Argument(..., help="Observation symbol ids"),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the result as JSON"
    )
):
    """Most likely hidden state path (Viterbi algorithm)."""
    try:
        model = load_hmm(validate_file_exists(model_file, "model file"))
        symbols = split_symbols(observations)
        result = viterbi(model, symbols)

        table = Table(title="Viterbi path")
        table.add_column("t", style="dim")
        table.add_column("Observation", style="cyan")
        table.add_column("State", style="magenta")
        for t, (symbol, state) in enumerate(zip(symbols, result.path)):
            table.add_row(str(t), symbol, state)
        console.print(table)
        console.print(f"Probability: {result.probability:.6g} "
                      f"(log {result.log_probability:.6f})")

        if output_file:
            save_json(result.to_dict(), output_file)
            console.print(f"[green]Results saved to: {output_file}[/green]")

    except Exception as e:
        handle_cli_error(e, "hmm viterbi", ctx.meta.get("debug", False))


@hmm_app.command("train")
def train_command(
    ctx: typer.Context,
    model_file: Path = typer.Argument(..., help="Initial HMM JSON file"),
    sequence: Optional[List[str]] = typer.Option(
        None, "--sequence", "-s", help="Comma-separated training sequence (repeatable)"
    ),
    sequences_file: Optional[Path] = typer.Option(
        None, "--sequences-file", help="JSON file with a list of sequences"
    ),
    max_iterations: Optional[int] = typer.Option(None, "--max-iter", help="Maximum EM iterations"),
    threshold: Optional[float] = typer.Option(
        None, "--threshold", help="Minimum log-likelihood improvement"
    ),
    regularization: Optional[float] = typer.Option(
        None, "--alpha", help="Dirichlet pseudo-count added to every count"
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the trained model as JSON"
    )
):
    """
    Re-estimate HMM parameters with Baum-Welch.

    Examples:
    ```
    probinfer hmm train model.json -s H,H,T,H -s T,T,H
    probinfer hmm train model.json --sequences-file sequences.json -o trained.json
    ```
    """
    try:
        model = load_hmm(validate_file_exists(model_file, "model file"))

        sequences = [split_symbols([s]) for s in (sequence or [])]
        if sequences_file is not None:
            data = load_json(validate_file_exists(sequences_file, "sequences file"))
            if not isinstance(data, list):
                raise UsageError("Sequences file must contain a list of sequences")
            sequences.extend([[str(o) for o in seq] for seq in data])

        if not sequences:
            raise UsageError("At least one training sequence is required",
                             suggestions=["Pass --sequence a,b,c or --sequences-file file.json"])

        with console.status("[bold blue]Training..."):
            result = train(model, sequences, max_iterations, threshold, regularization)

        status = "[green]converged[/green]" if result.converged else "[yellow]not converged[/yellow]"
        console.print(Panel.fit(
            f"[bold]Baum-Welch[/bold]\n"
            f"Sequences: {len(sequences)}\n"
            f"Iterations: {result.iterations} ({status})\n"
            f"Log-likelihood: {result.log_likelihood_history[0]:.6f} -> {result.final_log_likelihood:.6f}",
            border_style="blue"
        ))

        if output_file:
            document = result.model.to_dict()
            document['training'] = {
                'iterations': result.iterations,
                'converged': result.converged,
                'log_likelihood_history': result.log_likelihood_history
            }
            save_json(document, output_file)
            console.print(f"[green]Trained model saved to: {output_file}[/green]")

    except Exception as e:
        handle_cli_error(e, "hmm train", ctx.meta.get("debug", False))
