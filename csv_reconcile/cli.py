"""
Command Line Interface
----------------------
Typer application behind the csv-reconcile command.

Commands:
    run       Reconcile two directories with a matching config
    menu      Interactive menu with preset scenarios
    generate  Write a synthetic pair of CSV files with a known overlap
    serve     Start the HTTP API
"""

import os
import signal
import logging
import threading
from typing import Optional

import typer

from csv_reconcile.errors import ConfigurationError
from csv_reconcile.models.data_models import ReconciliationConfig
from csv_reconcile.core.reconciliation import run_and_report
from csv_reconcile.menu import choose_config, DEFAULT_CONFIGS_DIR
from csv_reconcile.utils.cancellation import CancellationToken
from csv_reconcile.utils.config_loader import build_config, env_defaults
from csv_reconcile.utils.console import ConsoleSink
from csv_reconcile.utils.logging_config import configure_logging
from csv_reconcile.utils.sample_data import generate_test_pair

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, help="Reconcile CSV files between two directories.")

EXIT_PAIR_FAILED = 1
EXIT_CONFIG_ERROR = 2


def _install_interrupt_handler(token: CancellationToken):
    """Turn Ctrl+C into a cancellation request. Returns the previous handler."""
    if threading.current_thread() is not threading.main_thread():
        return None

    def handle_interrupt(signum, frame):
        logger.warning("Cancellation requested by user")
        token.cancel()

    return signal.signal(signal.SIGINT, handle_interrupt)


def execute(config: ReconciliationConfig, verbose: bool = False, console: Optional[ConsoleSink] = None) -> int:
    """
    Run a reconciliation with console output and return the exit code.

    Returns:
        int: 0 on success, 1 if any pair failed, 2 on configuration errors
    """
    console = console or ConsoleSink()
    defaults = env_defaults()
    level = logging.DEBUG if verbose else getattr(logging, defaults["log_level"], logging.INFO)
    log_path = configure_logging(defaults["log_dir"] or config.output_dir, level=level, console=verbose)

    token = CancellationToken()
    previous_handler = _install_interrupt_handler(token)

    console.banner("RECONCILIATION IN PROGRESS")
    try:
        result = run_and_report(config, console=console, cancel_token=token)
    except ConfigurationError as e:
        for error in e.errors or [str(e)]:
            console.error(error)
        return EXIT_CONFIG_ERROR
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    console.summary(result)
    console.write()
    console.pair_table(result)
    console.write()
    console.success(f"Results written to {os.path.abspath(config.output_dir)}")
    if log_path:
        console.info(f"Log file: {log_path}")

    return EXIT_PAIR_FAILED if result.failed_count else 0


@app.command()
def run(
    left: str = typer.Option(..., "--left", "-a", help="Directory with the left-hand CSV files"),
    right: str = typer.Option(..., "--right", "-b", help="Directory with the right-hand CSV files"),
    config: str = typer.Option(..., "--config", "-c", help="JSON matching configuration"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output directory (default: Output)"),
    parallelism: Optional[int] = typer.Option(None, "--parallelism", "-p", help="Pairs processed at once (0 = CPU count)"),
    delimiter: str = typer.Option(",", "--delimiter", "-d", help="Field delimiter"),
    no_header: bool = typer.Option(False, "--no-header", help="Files have no header row"),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="OneToOne or AllAgainstAll"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Reconcile the CSV files of two directories."""
    overrides = {
        "output_dir": output,
        "concurrency": parallelism,
        "delimiter": delimiter,
        "has_header_row": not no_header,
        "pairing_mode": mode,
    }
    try:
        reconcile_config = build_config(left, right, config, overrides)
    except ConfigurationError as e:
        for error in e.errors or [str(e)]:
            typer.echo(f"ERROR: {error}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    code = execute(reconcile_config, verbose=verbose)
    if code:
        raise typer.Exit(code=code)


@app.command()
def menu(
    configs_dir: str = typer.Option(DEFAULT_CONFIGS_DIR, "--configs-dir", help="Directory with the preset config files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Choose a preset scenario from an interactive menu."""
    exit_code = 0
    while True:
        reconcile_config = choose_config(configs_dir)
        if reconcile_config is None:
            break

        exit_code = execute(reconcile_config, verbose=verbose)
        if not typer.confirm("  Run another reconciliation?", default=False):
            break

    if exit_code:
        raise typer.Exit(code=exit_code)


@app.command()
def generate(
    left_dir: str = typer.Option(os.path.join("TestData", "FolderA"), "--left-dir", help="Directory for the left file"),
    right_dir: str = typer.Option(os.path.join("TestData", "FolderB"), "--right-dir", help="Directory for the right file"),
    name: str = typer.Option("sample.csv", "--name", help="File name used on both sides"),
    rows: int = typer.Option(1000, "--rows", "-r", help="Rows per file"),
    overlap: float = typer.Option(80.0, "--overlap", help="Percentage of shared Ids"),
    extra_fields: int = typer.Option(0, "--extra-fields", help="Filler columns to add"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed"),
) -> None:
    """Generate a pair of CSV files with a known overlap."""
    try:
        expected = generate_test_pair(left_dir, right_dir, name, rows, overlap, extra_fields, seed)
    except ValueError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    typer.echo(f"Generated {name} in {left_dir} and {right_dir}")
    typer.echo(
        f"Expected: matched={expected['matched']}, only_left={expected['only_left']}, "
        f"only_right={expected['only_right']}"
    )


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
    port: int = typer.Option(int(os.environ.get("PORT", 8000)), "--port", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Start the HTTP API."""
    import uvicorn

    logger.info(f"Starting CSV Reconcile API on port {port}")
    uvicorn.run("csv_reconcile.main:app", host=host, port=port, reload=reload)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
