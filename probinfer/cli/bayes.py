"""
Bayesian network CLI commands.
"""

from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..bayes import infer
from ..io import load_network, load_query, save_json
from .errors import EXIT_CODES, UsageError, handle_cli_error, validate_file_exists

console = Console()

bayes_app = typer.Typer(
    name="bayes",
    help="Bayesian network inference commands"
)


def parse_evidence(items: List[str]) -> Dict[str, str]:
    """Parse ``VAR=VALUE`` pairs."""
    evidence = {}
    for item in items:
        name, sep, value = item.partition('=')
        if not sep or not name.strip():
            raise UsageError(f"Evidence must look like VAR=VALUE, got '{item}'",
                             suggestions=["Example: --evidence WetGrass=True"])
        evidence[name.strip()] = value.strip()
    return evidence


@bayes_app.command("infer")
def infer_command(
    ctx: typer.Context,
    network_file: Path = typer.Argument(..., help="Network JSON file"),
    query: Optional[str] = typer.Option(None, "--query", help="Query variable"),
    evidence: Optional[List[str]] = typer.Option(
        None, "--evidence", "-e", help="Observed value as VAR=VALUE (repeatable)"
    ),
    query_file: Optional[Path] = typer.Option(
        None, "--query-file", help="JSON file with {query, evidence}"
    ),
    method: Optional[str] = typer.Option(
        None, "--method", "-m", help="enumeration or variable_elimination"
    ),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the result as JSON"
    )
):
    """
    Compute the posterior distribution of one variable given evidence.

    Examples:
    ```
    probinfer bayes infer network.json --query Rain -e WetGrass=True
    probinfer bayes infer network.json --query-file query.json -o result.json
    ```
    """
    try:
        network = load_network(validate_file_exists(network_file, "network file"))

        observed = {}
        if query_file is not None:
            document = load_query(validate_file_exists(query_file, "query file"))
            query = query or document['query']
            observed.update(document['evidence'])
            method = method or document.get('method')
        observed.update(parse_evidence(evidence or []))

        if not query:
            raise UsageError("A query variable is required",
                             suggestions=["Pass --query NAME or --query-file query.json"])

        result = infer(network, query, observed, method=method)

        table = Table(title=f"P({query} | {', '.join(f'{k}={v}' for k, v in result.evidence.items()) or '-'})")
        table.add_column("Value", style="cyan")
        table.add_column("Probability", style="green")
        for value, p in result.probabilities.items():
            table.add_row(value, f"{p:.6f}")
        console.print(table)

        console.print(f"[dim]Algorithm: {result.algorithm}, "
                      f"normalization constant: {result.normalization_constant:.6g}[/dim]")

        if not result.valid:
            console.print(f"[yellow]Warning: {result.message}[/yellow]")

        if output_file:
            save_json(result.to_dict(), output_file)
            console.print(f"[green]Results saved to: {output_file}[/green]")

        if not result.valid:
            raise typer.Exit(EXIT_CODES["normalization_error"])

    except Exception as e:
        handle_cli_error(e, "bayes infer", ctx.meta.get("debug", False))


@bayes_app.command("validate")
def validate_command(
    ctx: typer.Context,
    network_file: Path = typer.Argument(..., help="Network JSON file")
):
    """Check a network for structural and normalization problems."""
    try:
        network = load_network(validate_file_exists(network_file, "network file"))
        summary = network.summary()
        problems = network.validate()

        console.print(Panel.fit(
            f"[bold]Network: {network_file}[/bold]\n"
            f"Nodes: {summary['node_count']}\n"
            f"Edges: {summary['edge_count']}\n"
            f"Topological order: {', '.join(summary['topological_order']) or '-'}",
            border_style="blue"
        ))

        if problems:
            console.print(f"[red]Network is invalid ({len(problems)} problems):[/red]")
            for problem in problems:
                console.print(f"  • {escape(problem)}")
            network.ensure_valid()

        console.print("[green]Network is valid[/green]")

    except Exception as e:
        handle_cli_error(e, "bayes validate", ctx.meta.get("debug", False))
