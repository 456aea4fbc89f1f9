"""
Command-line interface for RoboCell.

Provides commands for inspecting robot cell configurations.
"""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from robocell import __version__
from robocell.core.config import ConfigManager
from robocell.core.exceptions import RoboCellError
from robocell.core.logging import LEVELS, configure_logging
from robocell.kinematics.group import RobotCell
from robocell.kinematics.loader import RobotCellLoader
from robocell.targets import Tool

console = Console()


def _format_point(point) -> str:
    return "({:.2f}, {:.2f}, {:.2f})".format(*point)


def _load_cell(ctx: click.Context, name: str) -> RobotCell:
    config_mgr = ConfigManager(ctx.obj["config_dir"])
    return RobotCellLoader.load_from_config(config_mgr.get_cell(name))


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config-dir",
    type=click.Path(exists=True, path_type=Path),
    default="config",
    help="Configuration directory",
)
@click.option(
    "--log-level",
    type=click.Choice(LEVELS, case_sensitive=False),
    default="WARNING",
    help="Logging level",
)
@click.pass_context
def main(ctx: click.Context, config_dir: Path, log_level: str) -> None:
    """RoboCell - Kinematics and program checking for robot cells."""
    configure_logging(level=log_level)
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


# =============================================================================
# Cell Commands
# =============================================================================


@main.group()
def cells() -> None:
    """Robot cell commands."""
    pass


@cells.command("list")
@click.pass_context
def cells_list(ctx: click.Context) -> None:
    """List available robot cell configurations."""
    try:
        config_mgr = ConfigManager(ctx.obj["config_dir"])
        names = config_mgr.list_cells()

        if not names:
            console.print("[yellow]No cell configurations found.[/yellow]")
            return

        table = Table(title="Available Cells")
        table.add_column("Name", style="cyan")
        table.add_column("Cell")
        table.add_column("Groups")

        for name in names:
            cell = config_mgr.get_cell(name)
            table.add_row(name, cell.name, ", ".join(g.name for g in cell.groups))

        console.print(table)

    except RoboCellError as e:
        console.print(f"[red]✗[/red] Failed to list cells: {e}")
        raise SystemExit(1)


@cells.command("info")
@click.argument("name")
@click.pass_context
def cells_info(ctx: click.Context, name: str) -> None:
    """Show the mechanisms and joints of a robot cell."""
    try:
        cell = _load_cell(ctx, name)

        table = Table(title=f"Cell: {cell.name}")
        table.add_column("Group", style="cyan")
        table.add_column("Mechanism")
        table.add_column("Kind")
        table.add_column("Joint")
        table.add_column("Range")
        table.add_column("Home")

        for group in cell.groups:
            for mechanism in group.mechanisms:
                for joint in mechanism.joints:
                    table.add_row(
                        group.name,
                        mechanism.name,
                        mechanism.kind.value,
                        str(joint.number),
                        f"[{joint.range[0]:.3f}, {joint.range[1]:.3f}]",
                        f"{joint.home:.3f}",
                    )

        console.print(table)

    except RoboCellError as e:
        console.print(f"[red]✗[/red] Failed to load cell: {e}")
        raise SystemExit(1)


@cells.command("home")
@click.argument("name")
@click.pass_context
def cells_home(ctx: click.Context, name: str) -> None:
    """Resolve the home position of a robot cell and show its frames."""
    try:
        cell = _load_cell(ctx, name)
        tools = [Tool() for _ in cell.groups]
        solutions = cell.forward([group.home for group in cell.groups], tools)

        table = Table(title=f"Home: {cell.name}")
        table.add_column("Group", style="cyan")
        table.add_column("Frame")
        table.add_column("Origin")

        for group, solution in zip(cell.groups, solutions):
            for index, frame in enumerate(solution.frames):
                table.add_row(group.name, str(index), _format_point(frame.point))
            for error in solution.errors:
                console.print(f"[yellow]⚠[/yellow] {group.name}: {error}")

        console.print(table)

    except RoboCellError as e:
        console.print(f"[red]✗[/red] Failed to resolve home: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
