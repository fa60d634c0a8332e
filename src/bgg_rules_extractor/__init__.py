"""
BGG Rules Extractor

Exports the "Rules" forum section of a BoardGameGeek game into a single
text document and stores it in Google Drive.

Main components:
- RunOrchestrator: sequences a whole export and reports progress
- ForumLocator, ThreadLister, PostExtractor: the scraping pipeline
- SelectorResolver: ordered CSS fallback chains per page element
- DriveStoreClient: find-or-create upload into a Drive folder
- format_export / artifact_name: document rendering and file naming

Usage:
    from bgg_rules_extractor import PageFetcher, DriveStoreClient, RunOrchestrator, Subject
    import asyncio

    async def main():
        async with PageFetcher() as fetcher, DriveStoreClient(token) as store:
            outcome = await RunOrchestrator(fetcher, store).run(Subject("13", "Catan"))

    asyncio.run(main())
"""

from .config import Settings
from .context import ProgressChannel, RunContext, RunState
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
from .locator import ForumLocator, detect_subject
from .models import ArtifactRef, Post, ProgressEvent, RunError, Stage, Subject, ThreadRecord
from .orchestrator import RunOrchestrator, RunOutcome
from .parser import clean_text, parse
from .resolver import SelectorResolver, Strategy
from .store import DriveStoreClient
from .utils import artifact_name, canonicalize_url, resolve_link

__all__ = [
    'Settings',
    'ProgressChannel',
    'RunContext',
    'RunState',
    'ExtractorError',
    'FetchError',
    'NetworkError',
    'NotFoundError',
    'RunInProgressError',
    'StoreAuthError',
    'StoreError',
    'StoreUnavailableError',
    'PostExtractor',
    'PageFetcher',
    'format_export',
    'ThreadLister',
    'ForumLocator',
    'detect_subject',
    'ArtifactRef',
    'Post',
    'ProgressEvent',
    'RunError',
    'Stage',
    'Subject',
    'ThreadRecord',
    'RunOrchestrator',
    'RunOutcome',
    'clean_text',
    'parse',
    'SelectorResolver',
    'Strategy',
    'DriveStoreClient',
    'artifact_name',
    'canonicalize_url',
    'resolve_link',
]

__version__ = '1.0.0'
