"""Command line interface for twig."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from twig import __version__
from twig.cleaner import BranchCleaner, CleanupReport, UpstreamDeleter, UpstreamOutcome
from twig.credential import helper_command
from twig.git import DEFAULT_REMOTE, GitError, GitRepo

app = typer.Typer(help="Interactively prune local git branches", add_completion=False)
console = Console()


def setup_logging(verbose: bool) -> None:
    """Setup logging configuration.

    Args:
        verbose: If True, enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # GitPython logs every command at DEBUG
    if not verbose:
        logging.getLogger("git").setLevel(logging.WARNING)


def confirm(message: str) -> bool:
    """Ask the operator a yes/no question, defaulting to no."""
    try:
        return Confirm.ask(escape(message), console=console, default=False)
    except (EOFError, OSError):
        return False


def fail(err: Exception) -> typer.Exit:
    """Print a fatal error and return the exit to raise."""
    console.print(f"[red]Error:[/red] {escape(str(err))}")
    return typer.Exit(code=1)


def get_repo(path: Optional[Path]) -> GitRepo:
    """Get git repository instance."""
    if path is None:
        try:
            path = Path.cwd()
        except OSError as err:
            raise fail(GitError(f"Failed to determine current directory: {err}")) from err
    try:
        return GitRepo(path)
    except GitError as err:
        raise fail(err) from err


def print_report(report: CleanupReport) -> None:
    """Print the deleted branches as a table."""
    deleted = report.deleted
    if not deleted:
        console.print("\n[yellow]No branches were deleted[/yellow] 🤔")
        return

    table = Table(
        title=f"Successfully deleted {len(deleted)} branch(es) 🧹",
        show_header=True,
        header_style="bold",
        title_style="bold green",
        show_edge=True,
    )
    table.add_column("Branch", style="cyan")
    table.add_column("Upstream", style="magenta", justify="center")
    for result in deleted:
        if result.upstream == UpstreamOutcome.DELETED:
            upstream = f"[green]deleted on {escape(result.remote or '')}[/green]"
        elif result.upstream == UpstreamOutcome.FAILED:
            upstream = "[red]failed[/red]"
        else:
            upstream = result.upstream.value
        table.add_row(escape(result.name), upstream)
    console.print()
    console.print(table)


def version_callback(value: bool) -> None:
    """Print the version and exit when --version is given."""
    if value:
        console.print(f"twig {__version__}")
        raise typer.Exit()


@app.command()
def main(
    path: Annotated[Optional[Path], typer.Option(help="Path to git repository (default: current directory)")] = None,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """Walk local branches and delete the ones you confirm, optionally on the remote too."""
    setup_logging(verbose)
    repo = get_repo(path)

    try:
        default_branch = repo.get_default_branch(DEFAULT_REMOTE)
        entries = repo.list_local_branches()
    except GitError as err:
        raise fail(err) from err

    cleaner = BranchCleaner(
        repo,
        confirm=confirm,
        upstream_deleter=UpstreamDeleter(repo, credential_helper=helper_command()),
        default_branch=default_branch,
    )
    report = cleaner.run(entries)

    print_report(report)
    if report.errors:
        console.print(
            Panel(
                "\n".join(f"[blue]{escape(result.name)}[/blue]: {escape(result.error or '')}" for result in report.errors),
                title="Problems",
                title_align="left",
                style="yellow",
                padding=(0, 2),
                expand=False,
            )
        )


if __name__ == "__main__":
    app()
