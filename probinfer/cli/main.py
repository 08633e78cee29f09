"""
Main CLI application for probinfer.

Provides command-line access to Bayesian network inference, Markov chain
analysis and HMM decoding and training.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel

from ..config import load_config_file
from ..logger import set_log_level
from .errors import handle_cli_error, EXIT_CODES
from .bayes import bayes_app
from .markov import markov_app
from .hmm import hmm_app

console = Console()

app = typer.Typer(
    name="probinfer",
    help="Exact inference for Bayesian networks, Markov chains and Hidden Markov Models",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True
)

app.add_typer(bayes_app, name="bayes")
app.add_typer(markov_app, name="markov")
app.add_typer(hmm_app, name="hmm")


@app.command("version")
def show_version():
    """Show probinfer version information."""
    from .. import __version__

    console.print(Panel.fit(
        f"[bold]probinfer Version {__version__}[/bold]\n"
        f"Probabilistic inference engine\n"
        f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        border_style="blue"
    ))


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress all log output except errors"
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Show tracebacks for errors"
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a JSON configuration file",
        exists=True,
        file_okay=True,
        dir_okay=False
    )
):
    """
    probinfer: probabilistic inference engine

    \b
    Quick Start:
    1. Query a network:      probinfer bayes infer network.json --query Rain -e WetGrass=True
    2. Analyze a chain:      probinfer markov analyze chain.json
    3. Decode a sequence:    probinfer hmm viterbi model.json walk shop clean
    """
    ctx.meta["verbose"] = verbose
    ctx.meta["quiet"] = quiet
    ctx.meta["debug"] = debug

    if quiet:
        set_log_level('ERROR')
    elif verbose or debug:
        set_log_level('DEBUG')
    else:
        set_log_level('INFO')

    if config_file:
        try:
            load_config_file(str(config_file))
        except ValueError as e:
            handle_cli_error(e, "configuration loading", debug)


def cli_main():
    """Main entry point for CLI with error handling."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_CODES["general_error"])
    except Exception as e:
        try:
            handle_cli_error(e, "CLI operation", "--debug" in sys.argv)
        except typer.Exit as exit_:
            sys.exit(exit_.exit_code)


if __name__ == "__main__":
    cli_main()
