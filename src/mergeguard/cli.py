import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Optional

import typer
import aiohttp
from gidgethub import aiohttp as gh_aiohttp

from mergeguard import __version__
from mergeguard.errors import MergeguardError
from mergeguard.github.model import CHECK_RUN_NAME
from mergeguard.logger import setup_logging
from mergeguard.model import Configuration
from mergeguard.web import build_context, create_app

logger = logging.getLogger("mergeguard")

app = typer.Typer(help="Guard PRs from merging until all triggered checks have passed.")


class State:
    config_path: Optional[str] = None
    log_level: Optional[str] = None


state = State()


def load_config() -> Configuration:
    try:
        cfg = Configuration.load(state.config_path)
    except MergeguardError as e:
        typer.echo(f"Failed to load configuration: {e}", err=True)
        raise typer.Exit(code=1)
    if state.log_level is not None:
        cfg.log_level = state.log_level
    setup_logging(cfg.logging_level)
    return cfg


@asynccontextmanager
async def gate_client(cfg: Configuration):
    async with aiohttp.ClientSession() as session:
        gh = gh_aiohttp.GitHubAPI(session, "mergeguard", base_url=cfg.github.api)
        yield build_context(cfg, gh).client


def run(coro) -> None:
    try:
        asyncio.run(coro)
    except MergeguardError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)


@app.callback()
def init(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to the YAML config file"
    ),
    log: Optional[str] = typer.Option(
        None, "--log", help="Log level, overrides the level in the config file"
    ),
):
    state.config_path = config
    state.log_level = log


@app.command()
def server():
    """Run the bot and listen for webhook events on /webhook"""
    cfg = load_config()
    web = create_app(cfg)

    ssl = None
    if cfg.server.ssl.enabled:
        ssl = {"cert": cfg.server.ssl.cert, "key": cfg.server.ssl.key}

    logger.info("Starting server on port %d", cfg.server.port)
    web.run(
        host="0.0.0.0",
        port=cfg.server.port,
        ssl=ssl,
        single_process=True,
        access_log=False,
    )


@app.command()
def create(installation: int, repo: str, commit: str):
    """Create a new pending status check for a commit"""
    cfg = load_config()

    async def handle():
        async with gate_client(cfg) as client:
            await client.create_check_run(installation, repo, commit)

    run(handle())
    typer.echo(f"Created {CHECK_RUN_NAME} check-run for '{commit}'")


async def print_status(client, installation: int, repo: str, commit: str):
    result = await client.get_check_run_status(installation, repo, commit)
    typer.echo(f"Waiting on '{result.uncompleted}' check runs to complete")
    if result.own_check_run is not None:
        typer.echo(
            f"Found {CHECK_RUN_NAME} check-run, "
            f"status: '{result.own_check_run.status}', "
            f"conclusion: '{result.own_check_run.conclusion or 'null'}'"
        )
    else:
        typer.echo(f"No {CHECK_RUN_NAME} check-run found for this commit")
    return result


@app.command()
def refresh(installation: int, repo: str, commit: str):
    """Refresh the state of the status check of a commit"""
    cfg = load_config()

    async def handle():
        async with gate_client(cfg) as client:
            result = await print_status(client, installation, repo, commit)
            if result.uncompleted == 0:
                typer.echo(
                    "All check runs are completed, setting check-run to 'completed'"
                )
            if result.own_check_run is None:
                typer.echo(f"No {CHECK_RUN_NAME} check-run found, creating a new one")
            await client.update_check_run(installation, repo, commit, result)

    run(handle())
    typer.echo("Updated PR status")


@app.command()
def status(installation: int, repo: str, commit: str):
    """Check the status of a commit"""
    cfg = load_config()

    async def handle():
        async with gate_client(cfg) as client:
            await print_status(client, installation, repo, commit)

    run(handle())


@app.command()
def version():
    """Print the version and exit"""
    typer.echo(f"mergeguard {__version__}")
