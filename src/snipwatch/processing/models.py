"""Result models for file processing."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

ProcessStatus = Literal["succeeded", "failed", "skipped", "empty"]
ProcessStage = Literal["discovered", "copied", "renamed", "enhanced", "removed"]

STAGES: tuple[ProcessStage, ...] = ("discovered", "copied", "renamed", "enhanced", "removed")


@dataclass(slots=True)
class ProcessResult:
    """Outcome of processing one watched file.

    Attributes:
        source: Path of the file in the watch folder.
        status: Terminal status of the run.
        stage: Last stage the file reached before the run ended.
        original_copy: Copy written to the Originals folder, if any.
        enhanced_path: Enhanced output written, if any.
        error: Error message for failed runs.
    """

    source: Path
    status: ProcessStatus
    stage: ProcessStage = "discovered"
    original_copy: Optional[Path] = None
    enhanced_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def retryable(self) -> bool:
        """Whether the source was archived but left in place after a failure."""
        return self.failed and STAGES.index(self.stage) >= STAGES.index("copied") and self.stage != "removed"


__all__ = ["ProcessResult", "ProcessStatus", "ProcessStage", "STAGES"]
