import asyncio
from typing import Callable, List, Optional

from loguru import logger

from hlvs.config.settings import SamplingConfig
from hlvs.exceptions import HLVSException
from hlvs.providers.base import InferenceProvider
from hlvs.video_pipeline.core.sampling.frame_sampler import FrameSampler
from hlvs.video_pipeline.core.sampling.video_source import VideoSource
from hlvs.video_pipeline.core.summarization.models import (
    CaptionEntry,
    PipelineRun,
    PipelineSnapshot,
    PipelineStatus,
)
from hlvs.video_pipeline.prompts import PromptTemplates
from hlvs.video_pipeline.utils.helper import (
    build_caption_payload,
    build_evidence_block,
    build_text_payload,
    extract_text,
    partition_segments,
)

Observer = Callable[[PipelineSnapshot], None]


class SummarizationPipeline:
    """
    SummarizationPipeline turns a video into a short fact-grounded summary in
    three dependent stages, each delegated to an InferenceProvider:

    1. Event-level captioning: frames are sampled, grouped into contiguous
       segments and captioned one segment at a time.
    2. Logical chain: the ordered captions form an evidence block from which
       the provider derives the video's causal thread.
    3. Synthesis: the logical chain is condensed into the final summary.

    Every remote call and frame seek is awaited before the next one starts, so
    progress (10, 30, 50, 70, 80, 100 with the default three segments) only
    moves forward. A SamplingError or an exhausted RemoteCallError aborts the
    run with status FAILED; whatever was produced before the failure stays
    available in the snapshot.

    Attributes:
        provider (InferenceProvider): Remote content-generation provider.
        sampler (FrameSampler): Frame sampler, built from ``sampling_config`` when omitted.
        sampling_config (SamplingConfig): Frame and segment counts.
        prompts (PromptTemplates): Prompt set for the three stages.

    Example Usage:
    ---------------
    >>> from hlvs.providers import provider_factory
    >>> from hlvs.video_pipeline import SummarizationPipeline, OpenCVVideoSource
    >>> import asyncio
    >>>
    >>> async def summarize():
    >>>     async with provider_factory.create_inference_provider() as provider:
    >>>         pipeline = SummarizationPipeline(provider)
    >>>         pipeline.set_video_source(OpenCVVideoSource("<valid-video-path>"))
    >>>         snapshot = await pipeline.start()
    >>>         print(snapshot.summary)
    >>>
    >>> asyncio.run(summarize())
    """

    INITIAL_PROGRESS = 10
    CAPTION_PROGRESS_SPAN = 60
    LOGICAL_CHAIN_PROGRESS = 80
    COMPLETED_PROGRESS = 100

    def __init__(
        self,
        provider: InferenceProvider,
        sampler: Optional[FrameSampler] = None,
        sampling_config: Optional[SamplingConfig] = None,
        prompts: Optional[PromptTemplates] = None,
    ):
        self.provider = provider
        self.sampling_config = sampling_config or SamplingConfig()
        self.sampler = sampler or FrameSampler.from_config(self.sampling_config)
        self.prompts = prompts or PromptTemplates()

        self._run = PipelineRun()
        self._video_source: Optional[VideoSource] = None
        self._observers: List[Observer] = []

    @property
    def status(self) -> PipelineStatus:
        return self._run.status

    @property
    def video_source(self) -> Optional[VideoSource]:
        return self._video_source

    def snapshot(self) -> PipelineSnapshot:
        """Read-only copy of the current run state."""
        return PipelineSnapshot.from_run(self._run, has_video_source=self._video_source is not None)

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """
        Register ``callback`` to receive a snapshot after every state change.

        Returns:
            Function that removes the subscription
        """
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.opt(exception=True).warning(f"Pipeline observer {callback!r} raised: {e}")

    def _log(self, run: PipelineRun, message: str) -> None:
        run.add_log(message)
        logger.info(message)
        if run is self._run:
            self._notify()

    def _set_progress(self, run: PipelineRun, progress: int) -> None:
        run.progress = progress
        if run is self._run:
            self._notify()

    def set_video_source(self, source: VideoSource) -> None:
        """
        Use ``source`` for the next run and clear all results of the previous one.

        A run still in flight is detached: it finishes against its own state and
        no longer affects snapshots or observers.
        """
        if self._run.status == PipelineStatus.PROCESSING:
            logger.warning("Video source replaced while a run was processing; detaching it")

        self._video_source = source
        self._run = PipelineRun()
        logger.info(f"Video source set: {source!r}")
        self._notify()

    async def start(self) -> PipelineSnapshot:
        """
        Run the three stages on the current video source.

        Does nothing when no source is set or a run is already processing.
        Cancelling the awaiting task marks the run FAILED before the
        cancellation propagates.

        Returns:
            Snapshot of the pipeline once the run has completed or failed
        """
        source = self._video_source
        if source is None:
            logger.warning("start() ignored: no video source set")
            return self.snapshot()
        if self._run.status == PipelineStatus.PROCESSING:
            logger.warning("start() ignored: a run is already processing")
            return self.snapshot()

        run = self._run
        run.reset(status=PipelineStatus.PROCESSING)
        run.progress = self.INITIAL_PROGRESS
        self._log(run, "Starting hierarchical summarization...")

        try:
            captions = await self._caption_events(run, source)
            logical_chain = await self._build_logical_chain(run, captions)
            await self._synthesize(run, logical_chain)
        except HLVSException as e:
            self._fail(run, e)
        except asyncio.CancelledError:
            self._fail(run, "run cancelled")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during summarization: {e}")
            self._fail(run, e)
            raise

        return self.snapshot()

    def _fail(self, run: PipelineRun, error) -> None:
        run.status = PipelineStatus.FAILED
        self._log(run, f"Error: {error}")

    def _caption_progress(self, segment_index: int, segment_count: int) -> int:
        return self.INITIAL_PROGRESS + self.CAPTION_PROGRESS_SPAN * (segment_index + 1) // segment_count

    async def _caption_events(self, run: PipelineRun, source: VideoSource) -> List[CaptionEntry]:
        self._log(run, "Step 1: Event-level captioning...")

        frames = await self.sampler.sample(source, self.sampling_config.frame_count)
        segments = partition_segments(frames, self.sampling_config.segment_count)

        for segment in segments:
            payload = build_caption_payload(self.prompts.event_caption, segment)
            response = await self.provider.generate_content(payload)

            text = extract_text(response)
            if not text:
                logger.warning(f"No caption text for segment {segment.index + 1}, using sentinel")
                text = self.prompts.caption_sentinel

            entry = CaptionEntry(segment_index=segment.index, text=text)
            run.caption_entries.append(entry)
            self._set_progress(run, self._caption_progress(segment.index, len(segments)))
            self._log(run, f"{entry.label} captioned ({len(segment.frames)} frames)")

        self._log(run, "Step 1 complete: visual fact base established.")
        return list(run.caption_entries)

    async def _build_logical_chain(self, run: PipelineRun, captions: List[CaptionEntry]) -> str:
        self._log(run, "Step 2: Building the logical reasoning chain...")

        evidence = build_evidence_block(captions)
        prompt = self.prompts.render_logical_chain(evidence)
        response = await self.provider.generate_content(build_text_payload(prompt))

        logical_chain = extract_text(response)
        if logical_chain is None:
            logger.warning("Logical chain response has no text; continuing with an empty chain")
            logical_chain = ""

        run.logical_chain = logical_chain
        self._set_progress(run, self.LOGICAL_CHAIN_PROGRESS)
        self._log(run, "Step 2 complete: temporal logical chain established.")
        return logical_chain

    async def _synthesize(self, run: PipelineRun, logical_chain: str) -> str:
        self._log(run, "Step 3: Generating the objective summary...")

        prompt = self.prompts.render_synthesis(logical_chain)
        response = await self.provider.generate_content(build_text_payload(prompt))

        summary = extract_text(response)
        if summary is None:
            logger.warning("Summary response has no text; storing an empty summary")
            summary = ""

        run.summary = summary
        run.progress = self.COMPLETED_PROGRESS
        run.status = PipelineStatus.COMPLETED
        self._log(run, "Summary generated successfully!")
        return summary
