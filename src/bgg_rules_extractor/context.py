"""
Run-scoped state and the progress channel.

One ``RunContext`` is created per run and passed through every call of
that run. It owns the run state, the cancellation flag, the discovered
thread URLs and the collected thread records; nothing else mutates them.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

from .models import ProgressEvent, Stage, ThreadRecord

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class RunState(str, Enum):
    IDLE = "idle"
    LOCATING_FORUM = "locating_forum"
    LISTING_THREADS = "listing_threads"
    EXTRACTING_POSTS = "extracting_posts"
    FORMATTING = "formatting"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.FAILED, RunState.CANCELLED)


# Stage reported when entering each non-terminal state
STATE_STAGES = {
    RunState.LOCATING_FORUM: Stage.LOCATING,
    RunState.LISTING_THREADS: Stage.LISTING,
    RunState.EXTRACTING_POSTS: Stage.EXTRACTING,
    RunState.FORMATTING: Stage.FORMATTING,
    RunState.UPLOADING: Stage.UPLOADING,
    RunState.DONE: Stage.DONE,
}


class ProgressChannel:
    """
    Typed observer channel for progress events.

    The orchestrator writes, presentation layers subscribe. A listener that
    raises is logged and skipped so a broken renderer cannot stop a run.

    Usage:
        channel = ProgressChannel()
        unsubscribe = channel.subscribe(lambda event: print(event.message))
    """

    def __init__(self):
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ProgressEvent):
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning("Progress listener failed: %s", e)


class RunContext:
    """
    Everything a single run owns.

    Attributes:
        state: Current RunState
        progress: Channel receiving every progress event of the run
        thread_urls: Thread URLs discovered so far, in discovery order
        threads: Thread records extracted so far
    """

    def __init__(self, progress: Optional[ProgressChannel] = None):
        self.state = RunState.IDLE
        self.progress = progress or ProgressChannel()
        self.thread_urls: List[str] = []
        self.threads: List[ThreadRecord] = []
        self._cancel = asyncio.Event()

    # -------------------------------------------------------
    # CANCELLATION
    # -------------------------------------------------------
    # Checked between pagination iterations only; an in-flight fetch is
    # allowed to finish.

    def cancel(self):
        """Request cancellation of the run."""
        if not self._cancel.is_set():
            logger.info("Cancellation requested")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def active(self) -> bool:
        return self.state is not RunState.IDLE and not self.state.is_terminal

    # -------------------------------------------------------
    # PROGRESS
    # -------------------------------------------------------

    def emit(
        self,
        stage: Stage,
        message: str,
        current: Optional[int] = None,
        total: Optional[int] = None,
        url: Optional[str] = None,
    ):
        fraction = None
        if current is not None and total:
            fraction = min(max(current / total, 0.0), 1.0)
        self.progress.emit(ProgressEvent(
            stage=stage,
            message=message,
            current=current,
            total=total,
            fraction=fraction,
            url=url,
        ))

    def enter(self, state: RunState, message: str, **kwargs):
        """Move to ``state`` and report it."""
        logger.debug("Run state %s -> %s", self.state.value, state.value)
        self.state = state
        stage = STATE_STAGES.get(state)
        if stage is not None:
            self.emit(stage, message, **kwargs)
