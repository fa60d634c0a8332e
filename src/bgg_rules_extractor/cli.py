"""CLI interface for the BGG Rules Extractor."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import click
import orjson
from tqdm import tqdm

from .config import Settings
from .context import RunContext, RunState
from .errors import ExtractorError
from .fetcher import PageFetcher
from .locator import detect_subject
from .models import ProgressEvent, Stage, Subject
from .orchestrator import RunOrchestrator
from .store import DriveStoreClient

TOKEN_ENVVAR = "BGG_DRIVE_TOKEN"

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def install_interrupt_handler(loop: asyncio.AbstractEventLoop, context: RunContext) -> bool:
    """
    Make Ctrl-C request cancellation of the run instead of interrupting it.

    Returns False on event loops without signal support (Windows), where
    Ctrl-C keeps its default behaviour.
    """
    try:
        loop.add_signal_handler(signal.SIGINT, context.cancel)
    except NotImplementedError:
        logger.debug("Event loop has no signal handlers; Ctrl-C will not cancel cleanly")
        return False
    return True


class ProgressRenderer:
    """Render progress events as a tqdm bar over the extraction stage."""

    def __init__(self):
        self.bar: Optional[tqdm] = None

    def __call__(self, event: ProgressEvent):
        if event.stage is Stage.EXTRACTING and event.total:
            if self.bar is None:
                self.bar = tqdm(total=event.total, desc="Extracting threads")
            self.bar.n = event.current or 0
            self.bar.refresh()
            return
        self.close()
        tqdm.write(f"[{event.stage.value}] {event.message}")

    def close(self):
        if self.bar is not None:
            self.bar.close()
            self.bar = None


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
def main(verbose):
    """BGG Rules Extractor - export a game's Rules forum to Google Drive."""
    configure_logging(verbose)


@main.command()
@click.option('--game-id', help='BoardGameGeek game id')
@click.option('--title', help='Game title (used for the export header and file name)')
@click.option('--game-url', help='Game page URL; id and title are detected from it')
@click.option('--token', envvar=TOKEN_ENVVAR, required=True,
              help=f'Google Drive OAuth access token (or ${TOKEN_ENVVAR})')
@click.option('--folder', default=None, help='Destination folder id (default: root)')
@click.option('--forum', default=None, help='Forum section name (default: Rules)')
@click.option('--max-threads', type=int, default=None, help='Safety cap on threads')
@click.option('--delay', type=float, default=None, help='Seconds between page fetches')
@click.option('--previews', is_flag=True, default=None, help='Include first-post previews')
@click.option('--selectors', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help='JSON file overriding selector strategies')
@click.option('--save-local', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='Also write the export document to this file')
def extract(game_id, title, game_url, token, folder, forum, max_threads, delay,
            previews, selectors, save_local):
    """Extract the forum section of one game and upload it."""
    if not game_url and not (game_id and title):
        raise click.UsageError("Give either --game-url or both --game-id and --title")

    settings = Settings.from_env().with_overrides(
        forum_name=forum,
        max_threads=max_threads,
        request_delay=delay,
        include_previews=previews,
        selectors_file=selectors,
    )
    state = asyncio.run(_extract(settings, token, folder, game_id, title, game_url, save_local))
    if state is not RunState.DONE:
        sys.exit(1)


async def _extract(
    settings: Settings,
    token: str,
    folder: Optional[str],
    game_id: Optional[str],
    title: Optional[str],
    game_url: Optional[str],
    save_local: Optional[Path],
) -> RunState:
    renderer = ProgressRenderer()
    context = RunContext()
    context.progress.subscribe(renderer)

    async with PageFetcher(request_delay=settings.request_delay,
                           request_timeout=settings.request_timeout) as fetcher, \
            DriveStoreClient(token, request_timeout=settings.request_timeout) as store:
        if game_url:
            try:
                subject = detect_subject(game_url, await fetcher.fetch(game_url))
            except ExtractorError as e:
                raise click.ClickException(f"Could not detect the game: {e}") from e
            click.echo(f"Detected game: {subject.title} ({subject.subject_id})")
        else:
            subject = Subject(subject_id=game_id, title=title)

        orchestrator = RunOrchestrator(fetcher, store, settings)
        loop = asyncio.get_running_loop()
        # The in-flight fetch finishes; the run stops at the next iteration
        interruptible = install_interrupt_handler(loop, context)
        try:
            outcome = await orchestrator.run(subject, folder, context)
        finally:
            if interruptible:
                loop.remove_signal_handler(signal.SIGINT)
            renderer.close()

    if save_local is not None and outcome.document is not None:
        save_local.write_text(outcome.document, encoding="utf-8")
        click.echo(f"Saved a local copy to {save_local}")

    if outcome.ok:
        click.echo(orjson.dumps(outcome.artifact.to_dict(), option=orjson.OPT_INDENT_2).decode())
    else:
        click.echo(orjson.dumps(outcome.error.to_dict(), option=orjson.OPT_INDENT_2).decode(),
                   err=True)
    return outcome.state


@main.command()
@click.option('--token', envvar=TOKEN_ENVVAR, required=True, help='Google Drive OAuth access token')
@click.option('--parent', default='root', help='Folder whose sub-folders are listed')
def folders(token, parent):
    """List destination folders."""
    async def _list():
        async with DriveStoreClient(token) as store:
            return await store.list_folders(parent)

    for folder_id, name in asyncio.run(_list()):
        click.echo(f"{folder_id}\t{name}")


@main.command()
@click.argument('name')
@click.option('--token', envvar=TOKEN_ENVVAR, required=True, help='Google Drive OAuth access token')
@click.option('--parent', default='root', help='Folder to create the new folder in')
def mkfolder(name, token, parent):
    """Create a destination folder and print its id."""
    async def _create():
        async with DriveStoreClient(token) as store:
            return await store.create_folder(name, parent)

    click.echo(asyncio.run(_create()))


if __name__ == '__main__':
    main()
