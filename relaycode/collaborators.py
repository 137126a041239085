"""
External collaborators of the turn pipeline.

The host only calls these; indexing, version control and prompt rendering are
implemented elsewhere. The Null* defaults do nothing.
"""

from dataclasses import dataclass, field
from typing import List, Protocol, Tuple


class StructureIndexer(Protocol):
    def refresh(self) -> None:
        """Rebuild the directory-structure index after files were added, removed or changed."""


class VersionControl(Protocol):
    def commit_and_push(self, path: str, message: str) -> None:
        """Record a committed edit of ``path``."""


class PromptRenderer(Protocol):
    def render(self) -> None:
        """Regenerate the next prompt from the current artifacts."""


class NullIndexer:
    def refresh(self) -> None:
        return None


class NullVersionControl:
    def commit_and_push(self, path: str, message: str) -> None:
        return None


class NullRenderer:
    def render(self) -> None:
        return None


@dataclass
class Collaborators:
    indexer: StructureIndexer = field(default_factory=NullIndexer)
    vcs: VersionControl = field(default_factory=NullVersionControl)
    renderer: PromptRenderer = field(default_factory=NullRenderer)


def NullCollaborators() -> Collaborators:
    return Collaborators()


@dataclass
class RecordingCollaborators:
    """Collaborators that remember every call; used by tests and dry runs."""

    refreshes: int = 0
    commits: List[Tuple[str, str]] = field(default_factory=list)
    renders: int = 0

    def refresh(self) -> None:
        self.refreshes += 1

    def commit_and_push(self, path: str, message: str) -> None:
        self.commits.append((path, message))

    def render(self) -> None:
        self.renders += 1

    def as_collaborators(self) -> Collaborators:
        return Collaborators(indexer=self, vcs=self, renderer=self)
