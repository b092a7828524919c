from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hlvs.video_pipeline.core.sampling.frame_sampler import Frame


class PipelineStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Segment:
    """Contiguous group of frames captioned by one stage-1 call."""
    index: int
    frames: List[Frame]


@dataclass(frozen=True)
class CaptionEntry:
    """Stage-1 output for one Segment."""
    segment_index: int
    text: str

    @property
    def label(self) -> str:
        return f"Segment {self.segment_index + 1}"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    message: str

    def __str__(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


@dataclass
class PipelineRun:
    """
    Accumulated state of one summarization run.

    Only the orchestrator mutates a PipelineRun; observers receive
    PipelineSnapshot copies.
    """
    status: PipelineStatus = PipelineStatus.IDLE
    progress: int = 0
    logs: List[LogEntry] = field(default_factory=list)
    caption_entries: List[CaptionEntry] = field(default_factory=list)
    logical_chain: Optional[str] = None
    summary: Optional[str] = None

    def reset(self, status: PipelineStatus = PipelineStatus.IDLE) -> None:
        self.status = status
        self.progress = 0
        self.logs = []
        self.caption_entries = []
        self.logical_chain = None
        self.summary = None

    def add_log(self, message: str) -> LogEntry:
        entry = LogEntry(timestamp=datetime.now(), message=message)
        self.logs.append(entry)
        return entry


class CaptionEntryView(BaseModel):
    model_config = ConfigDict(frozen=True)

    segment_index: int
    label: str
    text: str


class PipelineSnapshot(BaseModel):
    """Read-only view of a PipelineRun for the presentation layer."""
    model_config = ConfigDict(frozen=True)

    status: PipelineStatus
    progress: int = Field(..., ge=0, le=100)
    logs: List[str] = Field(default_factory=list)
    log_timestamps: List[datetime] = Field(default_factory=list)
    caption_entries: List[CaptionEntryView] = Field(default_factory=list)
    logical_chain: Optional[str] = None
    summary: Optional[str] = None
    has_video_source: bool = False

    @classmethod
    def from_run(cls, run: PipelineRun, has_video_source: bool = False) -> "PipelineSnapshot":
        return cls(
            status=run.status,
            progress=run.progress,
            logs=[str(entry) for entry in run.logs],
            log_timestamps=[entry.timestamp for entry in run.logs],
            caption_entries=[
                CaptionEntryView(
                    segment_index=entry.segment_index,
                    label=entry.label,
                    text=entry.text,
                )
                for entry in run.caption_entries
            ],
            logical_chain=run.logical_chain,
            summary=run.summary,
            has_video_source=has_video_source,
        )
