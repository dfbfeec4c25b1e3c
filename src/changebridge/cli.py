# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .gerrit.client import GerritRestError
from .gerrit.locator import ChangeLocator
from .gerrit.platform import RepositoryArchivedError, resolve_repo_context
from .gerrit.service import (
    GerritService,
    GerritServiceError,
    create_gerrit_service,
)
from .gerrit.status import aggregate_branch_status
from .gerrit.utils import map_change_to_pr
from .models import BranchStatus, FindPrRequest, PrState

app = typer.Typer(
    help="Inspect Gerrit changes through the branch/pull-request model"
)
console = Console(markup=False)

_STATUS_STYLES = {
    BranchStatus.GREEN: "green",
    BranchStatus.YELLOW: "yellow",
    BranchStatus.RED: "red",
}


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging"
    ),
):
    """Gerrit branch/pull-request adapter."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )


def _build_service(
    endpoint: str, username: Optional[str], password: Optional[str]
) -> GerritService:
    return create_gerrit_service(endpoint, username=username, password=password)


EndpointOption = typer.Option(
    ..., "--endpoint", envvar="GERRIT_ENDPOINT", help="Gerrit server URL"
)
UsernameOption = typer.Option(
    None, "--username", envvar="GERRIT_USERNAME", help="HTTP username"
)
PasswordOption = typer.Option(
    None, "--password", envvar="GERRIT_PASSWORD", help="HTTP password"
)


@app.command()
def repos(
    endpoint: str = EndpointOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
):
    """List active code repositories."""
    try:
        service = _build_service(endpoint, username, password)
        names = service.get_repos()
    except (GerritRestError, GerritServiceError) as e:
        console.print(f"Error: {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Repositories on {endpoint}")
    table.add_column("Repository", style="cyan")
    for name in names:
        table.add_row(name)
    console.print(table)


@app.command()
def prs(
    repository: str = typer.Argument(..., help="Gerrit project name"),
    state: PrState = typer.Option(
        PrState.OPEN, "--state", help="Pull request state to list"
    ),
    endpoint: str = EndpointOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
):
    """List own changes of a repository as pull requests."""
    try:
        service = _build_service(endpoint, username, password)
        ctx = resolve_repo_context(service, repository)
        changes = ChangeLocator(service).find_changes(
            ctx, FindPrRequest(branch_name="", state=state)
        )
    except (
        GerritRestError,
        GerritServiceError,
        RepositoryArchivedError,
        ValueError,
    ) as e:
        console.print(f"Error: {e}")
        raise typer.Exit(1) from e

    if not changes:
        console.print(f"No {state.value} pull requests in {repository}")
        return

    table = Table(title=f"Pull requests in {repository}")
    table.add_column("PR", style="white")
    table.add_column("State", style="cyan")
    table.add_column("Branch", style="yellow")
    table.add_column("Title", style="white", max_width=50)
    for change in changes:
        pr = map_change_to_pr(change)
        table.add_row(f"#{pr.number}", pr.state.value, pr.target_branch, pr.title)
    console.print(table)


@app.command("branch-status")
def branch_status(
    repository: str = typer.Argument(..., help="Gerrit project name"),
    branch: str = typer.Argument(
        ..., help="Logical branch, e.g. main%topic=deps-foo"
    ),
    endpoint: str = EndpointOption,
    username: Optional[str] = UsernameOption,
    password: Optional[str] = PasswordOption,
):
    """Show the aggregated status of a logical branch."""
    try:
        service = _build_service(endpoint, username, password)
        ctx = resolve_repo_context(service, repository)
        changes = ChangeLocator(service).find_changes(
            ctx,
            FindPrRequest(branch_name=branch, state=PrState.OPEN),
            refresh_cache=True,
        )
    except (
        GerritRestError,
        GerritServiceError,
        RepositoryArchivedError,
        ValueError,
    ) as e:
        console.print(f"Error: {e}")
        raise typer.Exit(1) from e

    status = aggregate_branch_status(changes)
    console.print(
        f"{branch}: {status.value} ({len(changes)} open changes)",
        style=_STATUS_STYLES[status],
    )


if __name__ == "__main__":
    app()
