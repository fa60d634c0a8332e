"""
Data models for the BGG Rules Extractor.

This module defines typed data structures for the subject being exported,
the scraped threads and posts, the uploaded artifact, and the progress
events emitted during a run.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional

UNKNOWN_AUTHOR = "Unknown"
UNTITLED_THREAD = "Untitled thread"

# Posts whose cleaned body is shorter than this are discarded
MIN_BODY_LENGTH = 2

# Maximum characters of the first post shown as a thread preview
PREVIEW_LENGTH = 300


@dataclass(frozen=True)
class Subject:
    """
    The game whose forum is being exported.

    Attributes:
        subject_id: BoardGameGeek object id (e.g. "13")
        title: Human-readable title (e.g. "Catan")
        url: Game page URL, used in the export header

    Example:
        subject = Subject(subject_id="13", title="Catan")
    """
    subject_id: str
    title: str
    url: Optional[str] = None


@dataclass(frozen=True)
class Post:
    """
    One author contribution within a thread.

    Attributes:
        author: Username, "Unknown" when it cannot be resolved
        timestamp: Date string taken verbatim from the markup, if any
        body: Plain text with markup stripped
    """
    author: str = UNKNOWN_AUTHOR
    timestamp: Optional[str] = None
    body: str = ""

    def to_dict(self) -> dict:
        """Convert the post to a dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class ThreadRecord:
    """
    A scraped thread: its canonical URL, title, and posts in page order.

    Attributes:
        url: Canonical thread URL (fragment stripped)
        title: Resolved title, "Untitled thread" when no heading matched
        posts: Posts in source order; page N's posts precede page N+1's
        error: Inline error marker when extraction failed part-way.
               Posts collected before the failure are kept.

    Example:
        record = ThreadRecord(
            url="https://boardgamegeek.com/thread/123/setup-question",
            title="Setup question",
            posts=[Post(author="alice", body="How many cards?")],
        )
    """
    url: str
    title: str = UNTITLED_THREAD
    posts: List[Post] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def author(self) -> Optional[str]:
        """Author of the opening post."""
        return self.posts[0].author if self.posts else None

    @property
    def posted(self) -> Optional[str]:
        """Timestamp of the opening post."""
        return self.posts[0].timestamp if self.posts else None

    @property
    def replies(self) -> int:
        return max(len(self.posts) - 1, 0)

    @property
    def preview(self) -> Optional[str]:
        """First post body, truncated to PREVIEW_LENGTH characters."""
        if not self.posts:
            return None
        body = self.posts[0].body
        if len(body) <= PREVIEW_LENGTH:
            return body
        return body[:PREVIEW_LENGTH].rstrip() + "..."

    def to_dict(self) -> dict:
        d = asdict(self)
        d["replies"] = self.replies
        return d


@dataclass(frozen=True)
class ArtifactRef:
    """
    A document stored in the remote service.

    Attributes:
        artifact_id: Identifier assigned by the store
        artifact_name: File name within the container
        artifact_url: Browser URL of the stored document
        container: Id of the containing folder
    """
    artifact_id: str
    artifact_name: str
    artifact_url: str
    container: Optional[str] = None

    def to_dict(self) -> dict:
        """Final-result shape: id, name and url of the artifact."""
        return {
            "artifact_id": self.artifact_id,
            "artifact_name": self.artifact_name,
            "artifact_url": self.artifact_url,
        }


class Stage(str, Enum):
    """Stage label carried by every progress event."""
    LOCATING = "locating"
    LISTING = "listing"
    EXTRACTING = "extracting"
    FORMATTING = "formatting"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class ProgressEvent:
    """
    A progress update written to the run's progress channel.

    ``fraction`` is in [0, 1] when the stage has a known total.
    """
    stage: Stage
    message: str
    current: Optional[int] = None
    total: Optional[int] = None
    fraction: Optional[float] = None
    url: Optional[str] = None

    def to_dict(self) -> dict:
        d = {k: v for k, v in asdict(self).items() if v is not None}
        d["stage"] = self.stage.value
        return d


@dataclass(frozen=True)
class RunError:
    """Error result of a failed run: a readable message and the stage it failed in."""
    message: str
    stage: str

    def to_dict(self) -> dict:
        return asdict(self)
