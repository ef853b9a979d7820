"""CLI entry point: modrank.

Subcommands:
    modrank run -r github.com/owner/repo      # Scan repositories and print the ranking
    modrank update -o my-org                  # Precheck repository status via the GitHub API
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field

import click
import httpx

from modrank.core.config import load_config
from modrank.core.logging import setup_logging
from modrank.engines.scanner.runner import ModRank
from modrank.engines.scoring.scorer import GoModuleScore
from modrank.exceptions import ModRankError
from modrank.github_client import GitHubClient
from modrank.repository import Repository


@dataclass
class Settings:
    """Command-line options merged with the optional config file."""

    database: str = ""
    organization: str = ""
    repositories: list[str] = field(default_factory=list)
    worker: int = 1
    clone_path: str = ""
    git_access_token: str = ""
    cleanup_repo: bool = False


def load_settings(
    database: str,
    organization: str,
    repositories: tuple[str, ...],
    config_path: str | None,
    worker: int,
) -> Settings:
    """Build settings from flags; non-empty config file values win."""
    settings = Settings(
        database=database,
        organization=organization,
        repositories=list(repositories),
        worker=worker,
    )
    if config_path:
        cfg = load_config(config_path)
        if cfg.database:
            settings.database = cfg.database
        if cfg.organization:
            settings.organization = cfg.organization
        if cfg.repositories:
            settings.repositories = list(cfg.repositories)
        if cfg.clone_path:
            settings.clone_path = cfg.clone_path
    return settings


def normalize_repository_url(url: str) -> str:
    """``github.com/owner/repo`` → ``https://github.com/owner/repo.git``."""
    if not url.startswith("https://"):
        url = "https://" + url
    if not url.endswith(".git"):
        url += ".git"
    return url


async def create_repositories(settings: Settings, github_token: str | None) -> list[Repository]:
    repo_kwargs = {
        "auth_token": github_token,
        "clone_path": settings.clone_path or None,
    }
    repos: list[Repository] = []
    if settings.organization:
        async with GitHubClient(github_token) as client:
            names = await client.find_repositories_by_owner(settings.organization)
        for name in names:
            url = f"https://github.com/{settings.organization}/{name}.git"
            repos.append(Repository(url, **repo_kwargs))
    for url in settings.repositories:
        repos.append(Repository(normalize_repository_url(url), **repo_kwargs))
    if not repos:
        raise click.ClickException("required repository url for scanning")
    return repos


def create_modrank(settings: Settings, github_token: str | None) -> ModRank:
    return ModRank(
        sqlite_dsn=settings.database or None,
        worker_num=settings.worker,
        git_access_token=settings.git_access_token or None,
        github_token=github_token,
        github_api_cache=True,
        cleanup_repo=settings.cleanup_repo,
    )


def format_ranking(scores: list[GoModuleScore]) -> str:
    return "\n".join(
        f"- [{idx}] {s.name} ({s.repository}): {s.score}" for idx, s in enumerate(scores, 1)
    )


def _base_options(func):
    options = [
        click.option("-d", "--database", default="", help="Database path for caching"),
        click.option(
            "-o", "--org", "organization", default="", help="GitHub organization to scan"
        ),
        click.option(
            "-r",
            "--repository",
            "repositories",
            multiple=True,
            help="Repository address (repeatable)",
        ),
        click.option(
            "-c",
            "--config",
            "config_path",
            default=None,
            type=click.Path(dir_okay=False),
            help="Config file path",
        ),
        click.option(
            "-w",
            "--worker",
            default=1,
            show_default=True,
            type=click.IntRange(min=1),
            help="Worker number for concurrent processing",
        ),
        click.option("--debug", is_flag=True, help="Enable debug log"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
def main() -> None:
    """go-modrank: rank Go modules by how deeply your repositories depend on them."""


@main.command("run")
@_base_options
@click.option(
    "--git-access-token",
    envvar="GIT_ACCESS_TOKEN",
    default="",
    help="Access token for private modules resolved by go mod graph",
)
@click.option("--clone-path", default="", help="Base path for cloned repositories")
@click.option("--cleanup-repo", is_flag=True, help="Delete each clone after scanning it")
@click.option("--json", "json_output", is_flag=True, help="Output the ranking as JSON")
def run(
    database: str,
    organization: str,
    repositories: tuple[str, ...],
    config_path: str | None,
    worker: int,
    debug: bool,
    git_access_token: str,
    clone_path: str,
    cleanup_repo: bool,
    json_output: bool,
) -> None:
    """Scan all repositories and output ranking data."""
    setup_logging("DEBUG" if debug else None)
    try:
        settings = load_settings(database, organization, repositories, config_path, worker)
        settings.clone_path = clone_path or settings.clone_path
        settings.git_access_token = git_access_token
        settings.cleanup_repo = cleanup_repo
        scores = asyncio.run(_run(settings))
    except (ModRankError, httpx.HTTPError) as exc:
        raise click.ClickException(str(exc)) from exc

    if json_output:
        click.echo(json.dumps([s.model_dump() for s in scores]))
    elif scores:
        click.echo(format_ranking(scores))


async def _run(settings: Settings) -> list[GoModuleScore]:
    github_token = os.environ.get("GITHUB_TOKEN") or None
    repos = await create_repositories(settings, github_token)
    async with create_modrank(settings, github_token) as modrank:
        return await modrank.run(repos)


@main.command("update")
@_base_options
def update(
    database: str,
    organization: str,
    repositories: tuple[str, ...],
    config_path: str | None,
    worker: int,
    debug: bool,
) -> None:
    """Update repository status by GitHub API to speed up later runs."""
    setup_logging("DEBUG" if debug else None)
    try:
        settings = load_settings(database, organization, repositories, config_path, worker)
        asyncio.run(_update(settings))
    except (ModRankError, httpx.HTTPError) as exc:
        raise click.ClickException(str(exc)) from exc


async def _update(settings: Settings) -> None:
    github_token = os.environ.get("GITHUB_TOKEN") or None
    repos = await create_repositories(settings, github_token)
    async with create_modrank(settings, github_token) as modrank:
        await modrank.update_repository_status(repos)


if __name__ == "__main__":
    main()
