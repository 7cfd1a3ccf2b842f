"""
mosaic.errors — Error taxonomy.

Every error carries an optional hint and a chain of context frames
(project, node, input). A layer adds its frame by raising a copy:

    raise e.with_context(node="root") from e

The original is left as it was, so an error memoized on a handle keeps the
location where it happened, and each consumer sees the path it took:

    project 'app' → node 'root' → input 'lib' → project 'lib'
"""

from __future__ import annotations

import copy
from collections.abc import Mapping


class MosaicError(Exception):
    """Base error with a hint and resolution context."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        # (key, value) pairs, outermost first
        self.frames: tuple[tuple[str, str], ...] = tuple(
            (key, value) for key, value in (context or {}).items() if value
        )

    def with_context(self, **context: str) -> MosaicError:
        """Copy of this error with an outer frame. Empty values are skipped."""
        frame = tuple((key, value) for key, value in context.items() if value)
        err = copy.copy(self)
        err.frames = frame + self.frames
        return err

    @property
    def context(self) -> dict[str, str]:
        """key → value, taken from the innermost frame that sets it."""
        return dict(self.frames)

    @property
    def chain(self) -> str:
        return " → ".join(f"{key} '{value}'" for key, value in self.frames)

    def __str__(self) -> str:
        parts = [self.message]
        if self.chain:
            parts.append(f"  at: {self.chain}")
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        return "\n".join(parts)


class ConfigError(MosaicError):
    """Malformed workspace configuration or local state."""


class WorkspaceNotFoundError(MosaicError):
    """No workspace configuration within the directory-walk bound."""


class GraphParseError(MosaicError):
    """Malformed lock graph document."""


class UnresolvedFollowError(MosaicError):
    """A follow path (or declared input) names an input that does not exist."""

    def __init__(self, message: str, *, path: tuple[str, ...] = (), **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.path = tuple(path)


class CyclicFollowError(MosaicError):
    """A follow path revisits itself without terminating."""

    def __init__(self, message: str, *, path: tuple[str, ...] = (), **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.path = tuple(path)


class CyclicEvaluationError(MosaicError):
    """A node forced its own result while it was still being computed."""


class FetchError(MosaicError):
    """Source unreachable, unsupported, or hash mismatch."""


class MissingLocalSourceError(MosaicError):
    """An editable project's local path does not exist."""


class ProjectNotLockedError(MosaicError):
    """A registered, non-editable project has no entry in the lock graph."""


class ManifestError(MosaicError):
    """A project manifest exists but cannot be loaded."""


class DuplicateProjectNameError(MosaicError):
    """Two entries collide in the merged output namespace."""
