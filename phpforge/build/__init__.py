"""
PHP source builds: orchestration, binary discovery and link publication.
"""

from phpforge.build.discovery import discover_binary, verify_binary
from phpforge.build.linking import (
    Conflict,
    create_link,
    detect_unmanaged_php,
    publish_links,
    remove_link,
    resolve_link,
)
from phpforge.build.orchestrator import BuildOrchestrator, BuildResult
from phpforge.build.session import BuildLog, BuildSession

__all__ = [
    "BuildLog",
    "BuildOrchestrator",
    "BuildResult",
    "BuildSession",
    "Conflict",
    "create_link",
    "detect_unmanaged_php",
    "discover_binary",
    "publish_links",
    "remove_link",
    "resolve_link",
    "verify_binary",
]
