"""
Interactive Menu
----------------
Console menu offering preset reconciliation scenarios backed by the JSON
files in the Configs directory.
"""

import os
import logging
from typing import Dict, NamedTuple, Optional

import typer

from csv_reconcile.errors import ConfigurationError
from csv_reconcile.models.data_models import ReconciliationConfig
from csv_reconcile.utils.config_loader import build_config, read_config_file

logger = logging.getLogger(__name__)

DEFAULT_CONFIGS_DIR = "Configs"
DEFAULT_LEFT_DIR = os.path.join("TestData", "FolderA")
DEFAULT_RIGHT_DIR = os.path.join("TestData", "FolderB")


class MenuPreset(NamedTuple):
    title: str
    config_file: Optional[str]
    large_files: bool = False


MENU_PRESETS: Dict[str, MenuPreset] = {
    "1": MenuPreset("Orders Reconciliation (Single Field: InvoiceId)", "single-field-config.json"),
    "2": MenuPreset("Customers Reconciliation (Composite: FirstName + LastName)", "composite-config.json"),
    "3": MenuPreset("Products Reconciliation (Case Sensitive: ProductCode)", "case-sensitive-config.json"),
    "4": MenuPreset("Transactions Reconciliation (Single Field: TransactionId)", "transactions-config.json"),
    "5": MenuPreset("All-Against-All Mode (Compare every left file with every right file)", "all-against-all-config.json"),
    "6": MenuPreset("Large File Processing (Chunked joins with a memory ceiling)", "large-file-config.json", large_files=True),
    "7": MenuPreset("Custom Configuration (Specify your own paths and config)", None),
}

HELP_TEXT = """
  Command line usage:

    csv-reconcile run --left <dir> --right <dir> --config <file> [options]

  Required options:
    --left, -a        Directory with the left-hand CSV files
    --right, -b       Directory with the right-hand CSV files
    --config, -c      JSON matching configuration

  Optional:
    --output, -o      Output directory (default: Output)
    --parallelism, -p Number of pairs processed at once (default: CPU count)
    --delimiter, -d   Field delimiter (default: ,)
    --no-header       Files have no header row
    --mode            OneToOne or AllAgainstAll
    --verbose, -v     Debug logging
"""


def show_menu() -> None:
    typer.echo()
    typer.echo("=" * 80)
    typer.echo("CSV RECONCILIATION TOOL".center(80))
    typer.echo("=" * 80)
    typer.echo()
    typer.echo("  Please select an option:")
    typer.echo()
    for key, preset in MENU_PRESETS.items():
        typer.echo(f"  [{key}] --> {preset.title}")
    typer.echo()
    typer.echo("  [H] Help - View Command Line Usage")
    typer.echo("  [Q] Quit")
    typer.echo()


def _ask(text: str, default: str) -> str:
    value = typer.prompt(f"  {text}", default=default, show_default=True)
    return value.strip() or default


def prompt_for_config(preset: MenuPreset, configs_dir: str = DEFAULT_CONFIGS_DIR) -> ReconciliationConfig:
    """
    Ask for paths and options, then build the run configuration.

    Raises:
        ConfigurationError: If the preset file is missing or the answers are invalid
    """
    typer.echo(f"  Selected: {preset.title}")
    typer.echo()

    left_dir = _ask("Left directory", DEFAULT_LEFT_DIR)
    right_dir = _ask("Right directory", DEFAULT_RIGHT_DIR)
    output_dir = _ask("Output directory", "Output")

    if preset.config_file is None:
        config_path = _ask("Config file", os.path.join(configs_dir, "single-field-config.json"))
    else:
        config_path = os.path.join(configs_dir, preset.config_file)

    overrides = {"output_dir": output_dir}

    parallelism = typer.prompt("  Parallelism (0 = CPU count)", default=0, type=int)
    overrides["concurrency"] = parallelism

    if preset.large_files:
        file_data = read_config_file(config_path)
        overrides["memory_ceiling_mb"] = typer.prompt(
            "  Memory ceiling in MB (0 = auto)",
            default=int(file_data.get("maxMemoryUsageMB", 0)),
            type=int,
        )
        overrides["chunk_size_mb"] = typer.prompt(
            "  Chunk size in MB",
            default=int(file_data.get("chunkSizeMB", 1024)),
            type=int,
        )

    return build_config(left_dir, right_dir, config_path, overrides)


def choose_config(configs_dir: str = DEFAULT_CONFIGS_DIR) -> Optional[ReconciliationConfig]:
    """
    Show the menu until a scenario is configured or the user quits.

    Returns:
        Optional[ReconciliationConfig]: The chosen configuration, or None to quit
    """
    while True:
        show_menu()
        choice = typer.prompt("  Enter your choice").strip().upper()
        typer.echo()

        if choice == "Q":
            typer.echo("  Exiting application. Goodbye!")
            return None
        if choice == "H":
            typer.echo(HELP_TEXT)
            continue

        preset = MENU_PRESETS.get(choice)
        if preset is None:
            typer.echo("  Invalid choice, please try again.")
            continue

        try:
            return prompt_for_config(preset, configs_dir)
        except ConfigurationError as e:
            logger.error(f"Invalid configuration: {e}")
            for error in e.errors:
                typer.echo(f"  ERROR: {error}")
