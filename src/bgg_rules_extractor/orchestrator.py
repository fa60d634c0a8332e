"""
Run orchestrator: sequence locating, listing, extracting, formatting and
uploading, reporting progress on the run's channel.

State machine:

    IDLE -> LOCATING_FORUM -> LISTING_THREADS -> EXTRACTING_POSTS
         -> FORMATTING -> UPLOADING -> DONE

FAILED is reachable from every non-terminal state; CANCELLED from every
state before UPLOADING. A failed or cancelled run never uploads. Because
uploads replace by name, running the whole pipeline again is the recovery
path after a failure.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .config import Settings
from .context import STATE_STAGES, RunContext, RunState
from .errors import (
    ExtractorError,
    FetchError,
    NetworkError,
    NotFoundError,
    RunInProgressError,
    StoreAuthError,
    StoreError,
    StoreUnavailableError,
)
from .extractor import PostExtractor
from .fetcher import PageFetcher
from .formatter import format_export
from .lister import ThreadLister
from .locator import ForumLocator
from .models import ArtifactRef, RunError, Stage, Subject, ThreadRecord
from .resolver import SelectorResolver
from .store import DriveStoreClient
from .utils import artifact_name

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """
    What a run produced.

    Attributes:
        state: DONE, FAILED or CANCELLED
        artifact: Uploaded artifact (DONE only)
        error: Failure reason (FAILED and CANCELLED)
        threads: Thread records collected, possibly partial
        document: Rendered export (set once formatting ran)
    """
    state: RunState
    artifact: Optional[ArtifactRef] = None
    error: Optional[RunError] = None
    threads: List[ThreadRecord] = field(default_factory=list)
    document: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is RunState.DONE


class RunCancelled(Exception):
    """Internal signal: cancellation was observed between iterations."""


class RunOrchestrator:
    """
    Export one game's forum section to the remote store.

    Only one run may be active per orchestrator at a time.

    Usage:
        async with PageFetcher() as fetcher, DriveStoreClient(token) as store:
            orchestrator = RunOrchestrator(fetcher, store)
            outcome = await orchestrator.run(Subject("13", "Catan"))
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        store: DriveStoreClient,
        settings: Optional[Settings] = None,
        resolver: Optional[SelectorResolver] = None,
    ):
        self.settings = settings or Settings()
        if resolver is None:
            resolver = (
                SelectorResolver.from_file(self.settings.selectors_file)
                if self.settings.selectors_file else SelectorResolver()
            )
        self.fetcher = fetcher
        self.store = store
        self.locator = ForumLocator(fetcher, resolver, self.settings)
        self.lister = ThreadLister(fetcher, resolver, self.settings)
        self.extractor = PostExtractor(fetcher, resolver, self.settings)
        self._context: Optional[RunContext] = None

    @property
    def context(self) -> Optional[RunContext]:
        return self._context

    async def run(
        self,
        subject: Subject,
        container: Optional[str] = None,
        context: Optional[RunContext] = None,
        generated_at: Optional[datetime] = None,
    ) -> RunOutcome:
        """
        Run the whole pipeline for ``subject``.

        Page and store errors are turned into a FAILED outcome; they are
        not raised.

        Raises:
            RunInProgressError: another run of this orchestrator is active
        """
        if self._context is not None and self._context.active:
            raise RunInProgressError("An extraction is already running")

        context = context or RunContext()
        self._context = context
        container = container or self.settings.default_container
        forum = self.settings.forum_name

        try:
            # -------------------------------------------------------
            # STEP 1: Check the store token, then find the forum
            # -------------------------------------------------------
            context.enter(RunState.LOCATING_FORUM,
                          f"Locating {forum} forum for {subject.title}")
            await self.store.check_access()
            forum_url = await self.locator.locate(subject.subject_id)
            self._check_cancelled(context)

            # -------------------------------------------------------
            # STEP 2: Collect thread URLs
            # -------------------------------------------------------
            context.enter(RunState.LISTING_THREADS, f"Listing threads in {forum_url}",
                          url=forum_url)
            thread_urls = await self.lister.list_threads(forum_url, context)
            context.thread_urls = thread_urls
            self._check_cancelled(context)

            # -------------------------------------------------------
            # STEP 3: Extract every thread, one at a time
            # -------------------------------------------------------
            total = len(thread_urls)
            context.enter(RunState.EXTRACTING_POSTS, f"Extracting {total} threads",
                          current=0, total=total)
            for index, url in enumerate(thread_urls, start=1):
                self._check_cancelled(context)
                record = await self.extractor.extract_thread(url, context)
                context.threads.append(record)
                context.emit(
                    Stage.EXTRACTING,
                    f"Extracted thread {index} of {total}: {record.title}",
                    current=index, total=total, url=url,
                )
            self._check_cancelled(context)

            failed_threads = sum(1 for t in context.threads if t.error)
            if failed_threads:
                logger.warning("%d of %d threads had extraction errors", failed_threads, total)

            # -------------------------------------------------------
            # STEP 4: Render and upload
            # -------------------------------------------------------
            context.enter(RunState.FORMATTING, "Formatting export document")
            document = format_export(
                subject.title,
                subject.url or self.settings.subject_url(subject.subject_id),
                context.threads,
                forum_name=forum,
                generated_at=generated_at,
                include_previews=self.settings.include_previews,
            )

            name = artifact_name(subject.title)
            context.enter(RunState.UPLOADING, f"Uploading {name}")
            artifact = await self.store.upload(container, name, document, title=subject.title)

            context.enter(RunState.DONE, f"Saved {artifact.artifact_name}",
                          current=total, total=total, url=artifact.artifact_url)
            logger.info("Export complete: %s (%s)", artifact.artifact_name, artifact.artifact_id)
            return RunOutcome(
                state=RunState.DONE,
                artifact=artifact,
                threads=list(context.threads),
                document=document,
            )

        except RunCancelled:
            return self._cancel(context)
        except ExtractorError as e:
            return self._fail(context, self._describe(e, context.state))
        except Exception as e:
            self._fail(context, f"Unexpected error: {e}")
            raise

    @staticmethod
    def _check_cancelled(context: RunContext):
        if context.cancelled:
            raise RunCancelled()

    @staticmethod
    def _describe(error: ExtractorError, state: RunState) -> str:
        if isinstance(error, StoreAuthError):
            return f"Authentication failed: {error}"
        if isinstance(error, StoreUnavailableError):
            if state is RunState.UPLOADING:
                return f"Upload failed: {error}"
            return f"Storage unreachable: {error}"
        if isinstance(error, StoreError):
            if state is RunState.UPLOADING:
                return f"Upload rejected: {error}"
            return f"Storage request rejected: {error}"
        if isinstance(error, NotFoundError):
            return f"Forum not found: {error}"
        if isinstance(error, (FetchError, NetworkError)):
            return f"Could not fetch forum pages: {error}"
        return str(error)

    def _fail(self, context: RunContext, message: str) -> RunOutcome:
        stage = STATE_STAGES.get(context.state, Stage.LOCATING).value
        logger.error("Run failed while %s: %s", stage, message)
        context.state = RunState.FAILED
        context.emit(Stage.ERROR, message)
        return RunOutcome(
            state=RunState.FAILED,
            error=RunError(message=message, stage=stage),
            threads=list(context.threads),
        )

    def _cancel(self, context: RunContext) -> RunOutcome:
        stage = STATE_STAGES.get(context.state, Stage.LOCATING).value
        message = f"Run cancelled after {len(context.threads)} threads"
        logger.info(message)
        context.state = RunState.CANCELLED
        context.emit(Stage.ERROR, message)
        return RunOutcome(
            state=RunState.CANCELLED,
            error=RunError(message=message, stage=stage),
            threads=list(context.threads),
        )
