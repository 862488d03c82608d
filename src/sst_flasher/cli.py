"""
SST39SF Flasher CLI

Command-line interface for programming and dumping SST39SF flash chips
through the serial bridge.
"""

import sys
import logging
from typing import Optional

import click
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.logging import RichHandler
from rich.progress import Progress, BarColumn, TextColumn

from sst_flasher.protocol import (
    VerifyPolicy,
    DEFAULT_BAUD,
    progress_percent,
)
from sst_flasher.models import list_chips
from sst_flasher.core.parsing import parse_port as _parse_port_core, list_serial_ports
from sst_flasher.core.results import OperationResult
from sst_flasher.core.actions import (
    read_signature as core_read_signature,
    write_flash as core_write_flash,
    dump_flash as core_dump_flash,
)

# Setup Rich console
console = Console()

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
)
logger = logging.getLogger("sst_flasher")

app = typer.Typer(help="SST39SF flasher - program or dump parallel NOR flash over a serial bridge")


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def set_verbose(verbose: bool) -> None:
    if verbose:
        logger.setLevel(logging.DEBUG)


def resolve_port(value: str) -> str:
    """
    Resolve a COM port id or device path.

    Exits with status 1 when the id does not name an enumerated port.
    """
    try:
        return _parse_port_core(value)
    except ValueError as e:
        print_error(str(e))
        print_ports_table()
        raise typer.Exit(1)


def print_ports_table() -> None:
    """Print the COM port id table."""
    ports_list = list_serial_ports()

    if not ports_list:
        print_warning("No serial ports found")
        return

    table = Table(title="COM Port ID Table")
    table.add_column("ID", style="yellow")
    table.add_column("Device", style="cyan")
    table.add_column("Description", style="green")

    for index, port in enumerate(ports_list):
        table.add_row(str(index), port.device, port.description or "-")

    console.print(table)


def print_identity(result: OperationResult) -> None:
    identity = result.metadata.get("identity")
    if not identity:
        return

    table = Table(title="Chip Information")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Manufacturer ID", f"0x{identity['manufacturer_id']:02X}")
    table.add_row("Manufacturer", identity["manufacturer"])
    table.add_row("Device ID", f"0x{identity['device_id']:02X}")
    table.add_row("Chip", identity["chip"])
    table.add_row("Capacity", f"{identity['capacity']:,} bytes")

    console.print(table)


def report_result(result: OperationResult) -> None:
    """Print the outcome of a workflow and exit 1 on failure."""
    print_identity(result)

    for warning in result.warnings:
        print_warning(warning)

    if not result.ok:
        for error in result.errors:
            print_error(error)
        raise typer.Exit(1)

    console.print(result.to_summary(), style="dim")


@app.command()
def ports() -> None:
    """List available serial ports with their COM port ids."""
    print_header("Available Serial Ports")
    print_ports_table()


@app.command()
def chips() -> None:
    """List supported flash chips."""
    print_header("Supported Chips")

    table = Table(title="SST39SF Family")
    table.add_column("Device ID", style="yellow")
    table.add_column("Chip", style="cyan")
    table.add_column("Capacity", style="green")

    for profile in list_chips():
        table.add_row(
            f"0x{profile.device_id:02X}",
            profile.name,
            f"{profile.capacity_kib} KiB ({profile.capacity:,} bytes)",
        )

    console.print(table)
    console.print("[dim]Unknown device ids default to 512 KiB.[/dim]")


@app.command()
def identify(
    port: str = typer.Argument(..., help="COM port id or device path"),
    baud: int = typer.Option(DEFAULT_BAUD, "--baud", "-b", help="Serial baud rate"),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Read timeout in seconds (default: wait forever)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log raw serial traffic"),
) -> None:
    """Read the chip signature without touching its contents."""
    set_verbose(verbose)
    print_header("SST FLASHER - Identify")

    device = resolve_port(port)
    console.print(f"Port: {device}")

    result = core_read_signature(device, baud=baud, timeout=timeout)
    report_result(result)


@app.command()
def program(
    port: str = typer.Argument(..., help="COM port id or device path"),
    file_name: str = typer.Argument(..., metavar="FILE_NAME", help="Image to flash, or dump destination"),
    dump: bool = typer.Option(False, "-d", "--dump", help="Dump the chip to FILE_NAME instead of flashing it"),
    baud: int = typer.Option(DEFAULT_BAUD, "--baud", "-b", help="Serial baud rate"),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Read timeout in seconds (default: wait forever)"
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Abort on the first ack or readback mismatch"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log raw serial traffic"),
) -> None:
    """Flash FILE_NAME to the chip, or dump the chip to FILE_NAME with -d."""
    set_verbose(verbose)
    print_header("SST FLASHER")

    device = resolve_port(port)
    if dump:
        console.print(f"Dumping to {file_name} on {device}")
    else:
        console.print(f"Flashing from {file_name} on {device}")

    policy = VerifyPolicy.STRICT if strict else VerifyPolicy.LENIENT

    with Progress(
        TextColumn("[{task.description}]"),
        BarColumn(),
        TextColumn("[{task.percentage:>6.2f}%]"),
        console=console,
    ) as progress:
        task = progress.add_task("Dumping" if dump else "Flashing", total=100)

        def on_progress(index: int, total: int) -> None:
            progress.update(task, completed=progress_percent(index, total))

        if dump:
            result = core_dump_flash(
                device, file_name, baud=baud, timeout=timeout, progress_cb=on_progress
            )
        else:
            result = core_write_flash(
                device,
                file_name,
                baud=baud,
                timeout=timeout,
                policy=policy,
                progress_cb=on_progress,
            )

        if result.ok:
            progress.update(task, completed=100)

    report_result(result)
    print_success("COMPLETED")


def main() -> None:
    """Main entry point."""
    try:
        exit_code = app(standalone_mode=False)
    except click.UsageError as e:
        e.show()
        sys.exit(1)
    except (KeyboardInterrupt, click.Abort):
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[red bold]Fatal error:[/red bold] {e}")
        sys.exit(1)
    sys.exit(exit_code or 0)


if __name__ == "__main__":
    main()
