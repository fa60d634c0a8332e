"""
Export formatter: render collected threads as one plain-text document.

The output is a pure function of the arguments. Pass ``generated_at`` to
make it fully deterministic; otherwise the current time is embedded.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from .config import FORUM_NAME
from .models import Post, ThreadRecord

RULE = "=" * 50
THREAD_RULE = "-" * 50
POST_RULE = "-" * 20

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def format_post(post: Post) -> List[str]:
    """Lines for one post: "[timestamp] author:", the body, a separator."""
    heading = f"[{post.timestamp}] {post.author}:" if post.timestamp else f"{post.author}:"
    return [heading, post.body, POST_RULE]


def format_thread(index: int, thread: ThreadRecord, include_previews: bool = False) -> List[str]:
    lines = [
        f"Thread #{index}",
        POST_RULE,
        f"Title: {thread.title}",
    ]
    if thread.author is not None:
        lines.append(f"Author: {thread.author}")
    if thread.posted:
        lines.append(f"Posted: {thread.posted}")
    lines.append(f"Replies: {thread.replies}")
    lines.append(f"URL: {thread.url}")
    lines.append("")

    if include_previews and thread.preview:
        lines.extend(["Preview:", thread.preview, ""])

    for post in thread.posts:
        lines.extend(format_post(post))

    if thread.error:
        lines.append(f"[ERROR] {thread.error}")

    lines.extend([THREAD_RULE, ""])
    return lines


def format_export(
    subject_title: str,
    subject_url: str,
    threads: Sequence[ThreadRecord],
    forum_name: str = FORUM_NAME,
    generated_at: Optional[datetime] = None,
    include_previews: bool = False,
) -> str:
    """
    Render the export document.

    Args:
        subject_title: Game title shown in the header
        subject_url: Game page URL shown in the header
        threads: Thread records in listing order
        forum_name: Forum section label shown in the header
        generated_at: Timestamp embedded in header and footer (default: now)
        include_previews: Add a first-post preview to each thread block

    Returns:
        UTF-8 safe text, one thread block per record, header first.
    """
    stamp = format_timestamp(generated_at or datetime.now())

    lines = [
        "BoardGameGeek Rules Forum Export",
        RULE,
        "",
        f"Game: {subject_title}",
        f"URL: {subject_url}",
        f"Forum: {forum_name}",
        f"Extracted: {stamp}",
        f"Total Rules Threads: {len(threads)}",
        "",
        RULE,
        "",
    ]

    for index, thread in enumerate(threads, start=1):
        lines.extend(format_thread(index, thread, include_previews))

    lines.extend([
        "",
        f"Export completed at {stamp}",
        "Generated by BGG Rules Extractor",
    ])
    return "\n".join(lines) + "\n"
