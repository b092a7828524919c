from typing import Any, Dict, List, Optional, Sequence

from hlvs.exceptions import ValidationException
from hlvs.video_pipeline.core.sampling.frame_sampler import Frame
from hlvs.video_pipeline.core.summarization.models import CaptionEntry, Segment


def partition_segments(frames: Sequence[Frame], segment_count: int) -> List[Segment]:
    """
    Split frames into ``segment_count`` contiguous segments in temporal order.

    Segment sizes differ by at most one frame; earlier segments take the
    remainder. 12 frames and 3 segments give three segments of 4 frames.

    Args:
        frames: Sampled frames, ordered by index
        segment_count: Number of segments to produce

    Returns:
        List of Segment covering every frame exactly once
    """
    if segment_count <= 0:
        raise ValidationException(f"segment_count must be positive, got {segment_count}")
    if len(frames) < segment_count:
        raise ValidationException(
            f"Cannot split {len(frames)} frames into {segment_count} segments"
        )

    base, remainder = divmod(len(frames), segment_count)
    segments = []
    start = 0
    for index in range(segment_count):
        size = base + (1 if index < remainder else 0)
        segments.append(Segment(index=index, frames=list(frames[start:start + size])))
        start += size
    return segments


def build_text_payload(text: str) -> Dict[str, Any]:
    """Request body with a single text part."""
    return {"contents": [{"parts": [{"text": text}]}]}


def build_caption_payload(prompt: str, segment: Segment) -> Dict[str, Any]:
    """Request body with the caption prompt followed by the segment's frames."""
    parts = [{"text": prompt}]
    parts.extend(frame.to_part() for frame in segment.frames)
    return {"contents": [{"parts": parts}]}


def extract_text(response: Any) -> Optional[str]:
    """
    Return ``candidates[0].content.parts[0].text`` or None when any field is
    missing or has an unexpected shape.
    """
    try:
        text = response["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


def build_evidence_block(entries: Sequence[CaptionEntry]) -> str:
    """Concatenate captions in segment order, each labelled, separated by blank lines."""
    ordered = sorted(entries, key=lambda entry: entry.segment_index)
    return "\n\n".join(f"{entry.label}: {entry.text}" for entry in ordered)
