from .core.sampling.frame_sampler import Frame, FrameSampler
from .core.sampling.video_source import VideoSource, OpenCVVideoSource
from .core.summarization.models import CaptionEntry, PipelineSnapshot, PipelineStatus, Segment
from .core.summarization.pipeline import SummarizationPipeline
from .prompts import PromptTemplates

__all__ = [
    "Frame",
    "FrameSampler",
    "VideoSource",
    "OpenCVVideoSource",
    "CaptionEntry",
    "PipelineSnapshot",
    "PipelineStatus",
    "Segment",
    "SummarizationPipeline",
    "PromptTemplates",
]
