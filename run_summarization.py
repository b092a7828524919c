"""
Command-line runner for the hierarchical video summarization pipeline.
Usage: python run_summarization.py <video-path> [--frames 12] [--segments 3] [--json]
"""

import argparse
import asyncio
import sys

from loguru import logger
from pydantic import ValidationError

from hlvs.config.settings import HLVSConfig, SamplingConfig
from hlvs.exceptions import HLVSException
from hlvs.providers import provider_factory
from hlvs.utils.logging_config import log_manager
from hlvs.video_pipeline import OpenCVVideoSource, PipelineStatus, SummarizationPipeline


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize a video with a three-stage Gemini pipeline")
    parser.add_argument("video_path", help="Local path to the video file")
    parser.add_argument("--frames", type=int, default=None, help="Number of frames to sample")
    parser.add_argument("--segments", type=int, default=None, help="Number of caption segments")
    parser.add_argument("--json", action="store_true", help="Print the final snapshot as JSON")
    parser.add_argument("--quiet", action="store_true", help="Disable console logs")
    return parser.parse_args(argv)


def print_report(snapshot) -> None:
    print("=" * 80)
    print("Stage I: event captions")
    for entry in snapshot.caption_entries:
        print(f"\n[{entry.label}]\n{entry.text}")
    print("\n" + "=" * 80)
    print("Stage II: logical chain")
    print(snapshot.logical_chain or "-")
    print("\n" + "=" * 80)
    print("Stage III: summary")
    print(snapshot.summary or "-")
    print("=" * 80)
    print("\nRun log:")
    for line in snapshot.logs:
        print(f"  {line}")


async def main(argv=None) -> int:
    args = parse_args(argv)
    config = HLVSConfig()

    if args.quiet:
        log_manager.disable_console()
    else:
        log_manager.configure(config.logging)

    sampling_overrides = {
        key: value
        for key, value in (("frame_count", args.frames), ("segment_count", args.segments))
        if value is not None
    }

    try:
        sampling_config = SamplingConfig(**{**config.sampling.model_dump(), **sampling_overrides})
        source = OpenCVVideoSource(args.video_path)
        async with provider_factory.create_inference_provider(config=config) as provider:
            pipeline = SummarizationPipeline(provider, sampling_config=sampling_config)
            pipeline.set_video_source(source)
            snapshot = await pipeline.start()
    except ValidationError as e:
        logger.error(f"Invalid sampling settings: {e}")
        return 1
    except HLVSException as e:
        logger.error(f"Summarization could not start: {e}")
        return 1

    if args.json:
        print(snapshot.model_dump_json(indent=2))
    else:
        print_report(snapshot)

    return 0 if snapshot.status == PipelineStatus.COMPLETED else 1


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
