"""
Progress reporting for clone and pull.

A ``ProgressHandler`` observes one operation. ``GitProgressAdapter`` turns
GitPython's parsed ``--progress`` output into handler calls.
"""

import logging
from typing import Optional

from git import RemoteProgress

logger = logging.getLogger(__name__)


class ProgressHandler:
    """Observer for a single clone or pull. All hooks default to no-ops."""

    def on_progress(self, message: str, current: int, total: int) -> None:
        pass

    def on_complete(self) -> None:
        pass

    def on_error(self, error: BaseException) -> None:
        pass


class LoggingProgressHandler(ProgressHandler):
    """Relays progress to the debug log."""

    def __init__(self, label: str = "git"):
        self.label = label

    def on_progress(self, message: str, current: int, total: int) -> None:
        if total:
            logger.debug(f"{self.label}: {message} {current}/{total}")
        else:
            logger.debug(f"{self.label}: {message}")

    def on_complete(self) -> None:
        logger.debug(f"{self.label}: done")

    def on_error(self, error: BaseException) -> None:
        logger.debug(f"{self.label}: failed: {error}")


_STAGES = {
    RemoteProgress.COUNTING: "Counting objects",
    RemoteProgress.COMPRESSING: "Compressing objects",
    RemoteProgress.WRITING: "Writing objects",
    RemoteProgress.RECEIVING: "Receiving objects",
    RemoteProgress.RESOLVING: "Resolving deltas",
    RemoteProgress.FINDING_SOURCES: "Finding sources",
    RemoteProgress.CHECKING_OUT: "Checking out files",
}


class GitProgressAdapter(RemoteProgress):
    """GitPython progress sink forwarding to a ProgressHandler."""

    def __init__(self, handler: ProgressHandler):
        super().__init__()
        self.handler = handler

    def update(
        self,
        op_code: int,
        cur_count,
        max_count=None,
        message: str = "",
    ) -> None:
        stage = _STAGES.get(op_code & RemoteProgress.OP_MASK, "Working")
        text = f"{stage}: {message}" if message else stage
        self.handler.on_progress(text, int(cur_count or 0), int(max_count or 0))

    def line_dropped(self, line: str) -> None:
        # remote: lines and other chatter that carries no counters
        self.handler.on_progress(line.strip(), 0, 0)


def make_adapter(handler: Optional[ProgressHandler]) -> Optional[GitProgressAdapter]:
    """Wrap a handler, or return None when there is nothing to notify."""
    if handler is None:
        return None
    return GitProgressAdapter(handler)
