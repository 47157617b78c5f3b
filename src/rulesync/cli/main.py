"""
rulesync command line interface.

Thin wrapper over the repository access layer for cloning, pulling and
inspecting rule repositories from a shell.
"""

import functools
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, TaskID, TextColumn
from rich.table import Table

from rulesync import __version__
from rulesync.git import GitClient, GitError, ProgressHandler, ValidationPolicy
from rulesync.services import RepositoryCache, RuleFetcher, RuleNotFoundError
from rulesync.settings import RulesyncConfig, load_config

# Load environment variables
load_dotenv()

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Setup rich logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    # GitPython logs every command at debug level
    logging.getLogger("git").setLevel(logging.WARNING)


class RichProgressHandler(ProgressHandler):
    """Renders clone/pull progress as rich progress bars, one per stage."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self.tasks: dict[str, TaskID] = {}

    def on_progress(self, message: str, current: int, total: int) -> None:
        if not total:
            return
        task = self.tasks.get(message)
        if task is None:
            task = self.progress.add_task(message, total=total)
            self.tasks[message] = task
        self.progress.update(task, completed=current, total=total)

    def on_error(self, error: BaseException) -> None:
        for task in self.tasks.values():
            self.progress.stop_task(task)


def make_progress() -> Progress:
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
        transient=True,
    )


def handle_errors(func):
    """Print layer errors in red and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (GitError, RuleNotFoundError) as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}", markup=True, highlight=False)
            sys.exit(1)

    return wrapper


def make_client(config: RulesyncConfig, any_host: bool = False) -> GitClient:
    policy = None
    if any_host:
        policy = ValidationPolicy.open(config.git.allowed_schemes)
    return GitClient(config.git, policy=policy)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Configuration file (YAML or JSON); defaults to RULESYNC_* variables",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[Path]):
    """rulesync - fetch and inspect rule repositories."""
    setup_logging(verbose)
    try:
        ctx.obj = load_config(config_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Failed to load configuration:[/red] {e}", highlight=False)
        sys.exit(1)


@cli.command()
@click.argument("address")
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--branch", "-b", default=None, help="Branch or tag to check out")
@click.option("--depth", type=click.IntRange(min=1), default=None, help="Shallow clone depth")
@click.option("--single-branch", is_flag=True, help="Fetch only the requested branch")
@click.option("--timeout", type=float, default=None, help="Timeout in seconds")
@click.option("--any-host", is_flag=True, help="Accept any host (schemes still checked)")
@click.pass_obj
@handle_errors
def clone(
    config: RulesyncConfig,
    address: str,
    path: Path,
    branch: Optional[str],
    depth: Optional[int],
    single_branch: bool,
    timeout: Optional[float],
    any_host: bool,
):
    """Clone ADDRESS into PATH."""
    client = make_client(config, any_host)
    with make_progress() as progress:
        client.clone(
            address,
            path,
            branch=branch,
            depth=depth,
            single_branch=single_branch,
            timeout=timeout,
            progress=RichProgressHandler(progress),
        )
    console.print(f"[green]Cloned[/green] into {path}", highlight=False)


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--branch", "-b", default=None, help="Branch to check out before pulling")
@click.option("--timeout", type=float, default=None, help="Timeout in seconds")
@click.pass_obj
@handle_errors
def pull(config: RulesyncConfig, path: Path, branch: Optional[str], timeout: Optional[float]):
    """Fast-forward the repository at PATH from origin."""
    client = make_client(config)
    with make_progress() as progress:
        client.pull(path, branch=branch, timeout=timeout, progress=RichProgressHandler(progress))
    console.print(f"[green]Updated[/green] {path}", highlight=False)


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--ref", "-r", default="", help="Branch or tag (default: HEAD)")
@click.pass_obj
@handle_errors
def head(config: RulesyncConfig, path: Path, ref: str):
    """Print the commit hash PATH's HEAD (or --ref) points to."""
    click.echo(make_client(config).latest_commit_hash(path, ref))


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.argument("commit_hash", metavar="HASH")
@click.pass_obj
@handle_errors
def commit(config: RulesyncConfig, path: Path, commit_hash: str):
    """Print hash and date of a commit (full or 7-character HASH)."""
    info = make_client(config).commit_info(path, commit_hash)
    click.echo(f"{info.hash} {info.date}")


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=Path))
@click.argument("file_path", metavar="FILE")
@click.argument("commit_hash", metavar="HASH")
@click.pass_obj
@handle_errors
def show(config: RulesyncConfig, path: Path, file_path: str, commit_hash: str):
    """Print FILE as it was at commit HASH."""
    data = make_client(config).file_at_commit(path, file_path, commit_hash)
    click.echo(data, nl=False)


# =============================================================================
# Rules
# =============================================================================

@cli.group()
def rules():
    """Browse rules in remote rule repositories."""
    pass


def make_fetcher(config: RulesyncConfig) -> RuleFetcher:
    client = make_client(config)
    return RuleFetcher(RepositoryCache(client, config.cache_dir), client)


@rules.command("list")
@click.argument("source")
@click.option("--ref", "-r", default="main", help="Branch or tag")
@click.pass_obj
@handle_errors
def list_rules(config: RulesyncConfig, source: str, ref: str):
    """List the rules available in SOURCE."""
    names = make_fetcher(config).list_rules(source, ref)
    if not names:
        console.print("[yellow]No rules found[/yellow]")
        return
    for name in names:
        click.echo(name)


@rules.command("show")
@click.argument("source")
@click.argument("rule_path", metavar="RULE")
@click.option("--ref", "-r", default="main", help="Branch or tag")
@click.option("--commit", "commit_hash", default=None, help="Read the rule at this commit")
@click.option("--info", is_flag=True, help="Print commit information instead of content")
@click.pass_obj
@handle_errors
def show_rule(
    config: RulesyncConfig,
    source: str,
    rule_path: str,
    ref: str,
    commit_hash: Optional[str],
    info: bool,
):
    """Print RULE from SOURCE."""
    fetcher = make_fetcher(config)
    if commit_hash:
        rule = fetcher.fetch_rule_at_commit(source, ref, rule_path, commit_hash)
    else:
        rule = fetcher.fetch_rule(source, ref, rule_path)

    if info:
        table = Table(show_header=False, box=None)
        table.add_row("rule", rule.path)
        table.add_row("commit", rule.commit.hash)
        table.add_row("date", rule.commit.date)
        console.print(table)
        return
    click.echo(rule.content, nl=False)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
