"""
Tests for SummarizationPipeline: stage sequencing, progress, observers and
failure semantics.
"""

import asyncio

import pytest

from hlvs.config.settings import SamplingConfig
from hlvs.exceptions import RemoteTransportError
from hlvs.providers.gemini_providers import GeminiInferenceProvider
from hlvs.tests.fakes import FakeInferenceProvider, FakeVideoSource, text_response
from hlvs.video_pipeline import PipelineStatus, PromptTemplates, SummarizationPipeline
from hlvs.video_pipeline.prompts import CAPTION_EXTRACTION_FAILED


def first_text(payload):
    return payload["contents"][0]["parts"][0]["text"]


def index_of(logs, fragment):
    return next(i for i, line in enumerate(logs) if fragment in line)


class BlockingProvider(FakeInferenceProvider):
    """Holds every call until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def generate_content(self, payload):
        await self.release.wait()
        return await super().generate_content(payload)


async def test_end_to_end_run_completes():
    provider = FakeInferenceProvider()
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(FakeVideoSource(duration=30.0))

    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.COMPLETED
    assert snapshot.progress == 100
    assert [entry.segment_index for entry in snapshot.caption_entries] == [0, 1, 2]
    assert [entry.text for entry in snapshot.caption_entries] == ["deterministic text"] * 3
    assert snapshot.logical_chain == "deterministic text"
    assert snapshot.summary == "deterministic text"
    assert len(provider.payloads) == 5

    logs = snapshot.logs
    assert index_of(logs, "Segment 1 captioned") < index_of(logs, "Segment 2 captioned") \
        < index_of(logs, "Segment 3 captioned") < index_of(logs, "Step 2 complete") \
        < index_of(logs, "Summary generated")
    timestamps = snapshot.log_timestamps
    assert all(a <= b for a, b in zip(timestamps, timestamps[1:]))


async def test_each_caption_call_carries_four_frames(fake_source):
    provider = FakeInferenceProvider()
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    await pipeline.start()

    caption_payloads = provider.payloads[:3]
    for payload in caption_payloads:
        parts = payload["contents"][0]["parts"]
        assert parts[0] == {"text": pipeline.prompts.event_caption}
        assert len(parts) == 5
        assert all(part["inlineData"]["mimeType"] == "image/jpeg" for part in parts[1:])
    # frames are sent in temporal order, segment after segment
    sent = [part["inlineData"]["data"] for payload in caption_payloads
            for part in payload["contents"][0]["parts"][1:]]
    assert len(sent) == 12
    assert fake_source.seeks == [2.5 * i for i in range(12)]


async def test_logical_chain_prompt_contains_all_captions_in_order(fake_source):
    provider = FakeInferenceProvider(responses=[
        text_response("a dog enters"),
        text_response("the dog jumps"),
        text_response("the dog sleeps"),
        text_response("chain"),
        text_response("summary"),
    ])
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    await pipeline.start()

    stage_two = first_text(provider.payloads[3])
    assert "Segment 1: a dog enters\n\nSegment 2: the dog jumps\n\nSegment 3: the dog sleeps" in stage_two
    assert stage_two.index("a dog enters") < stage_two.index("the dog jumps") < stage_two.index("the dog sleeps")
    assert "chain" in first_text(provider.payloads[4])


async def test_progress_is_monotonic_and_hits_every_stage(fake_source):
    pipeline = SummarizationPipeline(FakeInferenceProvider())
    pipeline.set_video_source(fake_source)
    observed = []
    pipeline.subscribe(lambda snapshot: observed.append(snapshot.progress))

    await pipeline.start()

    assert all(a <= b for a, b in zip(observed, observed[1:]))
    for expected in (10, 30, 50, 70, 80, 100):
        assert expected in observed


async def test_missing_caption_text_uses_sentinel(fake_source):
    provider = FakeInferenceProvider(responses=[
        text_response("first"),
        {"candidates": []},
        text_response(""),
    ])
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.COMPLETED
    assert [entry.text for entry in snapshot.caption_entries] == [
        "first", CAPTION_EXTRACTION_FAILED, CAPTION_EXTRACTION_FAILED,
    ]


async def test_missing_logical_chain_text_proceeds_with_empty_chain(fake_source):
    provider = FakeInferenceProvider(responses=[
        text_response("c1"), text_response("c2"), text_response("c3"),
        {"promptFeedback": {"blockReason": "OTHER"}},
        text_response("summary"),
    ])
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.COMPLETED
    assert snapshot.logical_chain == ""
    assert snapshot.summary == "summary"
    assert len(provider.payloads) == 5


async def test_stage_two_transport_failure_fails_run(gemini_stub, recording_sleep, fake_source):
    def reply(request_number):
        if request_number <= 3:
            return 200, text_response(f"caption {request_number}")
        return 500, {"error": "internal"}

    gemini_stub.default_reply = reply
    provider = GeminiInferenceProvider(
        {"api_key": "test-key", "base_url": gemini_stub.base_url, "model_name": "gemini-test"},
        sleep=recording_sleep,
    )
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    async with provider:
        snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.FAILED
    assert [entry.text for entry in snapshot.caption_entries] == ["caption 1", "caption 2", "caption 3"]
    assert snapshot.logical_chain is None
    assert snapshot.summary is None
    assert snapshot.progress == 70
    assert "Error: API Error: 500" in snapshot.logs[-1]
    # 3 caption calls + 5 attempts for stage 2, nothing for stage 3
    assert len(gemini_stub.requests) == 8
    assert recording_sleep.delays == [1.0, 2.0, 4.0, 8.0]


async def test_caption_failure_keeps_earlier_captions(fake_source):
    provider = FakeInferenceProvider(responses=[
        text_response("only caption"),
        RemoteTransportError("API Error: 503", status=503),
    ])
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.FAILED
    assert [entry.text for entry in snapshot.caption_entries] == ["only caption"]
    assert snapshot.progress == 30
    assert len(provider.payloads) == 2


async def test_sampling_error_fails_run_before_any_call():
    provider = FakeInferenceProvider()
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(FakeVideoSource(duration=0.0))

    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.FAILED
    assert snapshot.progress == 10
    assert snapshot.caption_entries == []
    assert provider.payloads == []
    assert "Error:" in snapshot.logs[-1]


async def test_unexpected_error_marks_run_failed_and_propagates(fake_source):
    provider = FakeInferenceProvider(responses=[RuntimeError("bug")])
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    with pytest.raises(RuntimeError):
        await pipeline.start()

    assert pipeline.status == PipelineStatus.FAILED


async def test_start_without_source_is_a_no_op():
    provider = FakeInferenceProvider()
    pipeline = SummarizationPipeline(provider)

    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.IDLE
    assert snapshot.progress == 0
    assert snapshot.logs == []
    assert provider.payloads == []


async def test_second_start_while_processing_is_ignored(fake_source):
    provider = BlockingProvider()
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    first = asyncio.create_task(pipeline.start())
    while len(fake_source.seeks) < 12:
        await asyncio.sleep(0)
    assert pipeline.status == PipelineStatus.PROCESSING

    ignored = await pipeline.start()
    assert ignored.status == PipelineStatus.PROCESSING
    assert len(fake_source.seeks) == 12

    provider.release.set()
    snapshot = await first

    assert snapshot.status == PipelineStatus.COMPLETED
    assert len(provider.payloads) == 5


async def test_new_source_while_processing_detaches_running_job(fake_source):
    provider = BlockingProvider()
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)
    observed = []
    pipeline.subscribe(lambda snapshot: observed.append(snapshot.status))

    first = asyncio.create_task(pipeline.start())
    while len(fake_source.seeks) < 12:
        await asyncio.sleep(0)

    replacement = FakeVideoSource(duration=12.0)
    pipeline.set_video_source(replacement)
    assert pipeline.status == PipelineStatus.IDLE
    assert pipeline.video_source is replacement

    observed.clear()
    provider.release.set()
    snapshot = await first

    assert snapshot.status == PipelineStatus.IDLE
    assert snapshot.caption_entries == []
    assert snapshot.logs == []
    assert observed == []

    rerun = await pipeline.start()
    assert rerun.status == PipelineStatus.COMPLETED
    assert replacement.seeks == [1.0 * i for i in range(12)]


async def test_cancelled_run_is_marked_failed_and_pipeline_stays_usable(fake_source):
    provider = BlockingProvider()
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(pipeline.start(), 0.2)

    cancelled = pipeline.snapshot()
    assert cancelled.status == PipelineStatus.FAILED
    assert cancelled.progress == 10
    assert "Error: run cancelled" in cancelled.logs[-1]

    provider.release.set()
    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.COMPLETED
    assert snapshot.progress == 100

    pipeline.set_video_source(FakeVideoSource())
    assert pipeline.status == PipelineStatus.IDLE


async def test_new_source_after_completion_resets_run(fake_source):
    pipeline = SummarizationPipeline(FakeInferenceProvider())
    pipeline.set_video_source(fake_source)
    await pipeline.start()

    pipeline.set_video_source(FakeVideoSource(duration=12.0))
    snapshot = pipeline.snapshot()

    assert snapshot.status == PipelineStatus.IDLE
    assert snapshot.progress == 0
    assert snapshot.caption_entries == []
    assert snapshot.logical_chain is None
    assert snapshot.summary is None
    assert snapshot.logs == []
    assert snapshot.has_video_source


async def test_restart_after_failure_runs_from_scratch(fake_source):
    provider = FakeInferenceProvider(responses=[
        text_response("c1"),
        RemoteTransportError("API Error: 500", status=500),
    ])
    pipeline = SummarizationPipeline(provider)
    pipeline.set_video_source(fake_source)
    failed = await pipeline.start()
    assert failed.status == PipelineStatus.FAILED

    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.COMPLETED
    assert len(snapshot.caption_entries) == 3
    assert not any("Error:" in line for line in snapshot.logs)
    assert len(provider.payloads) == 2 + 5


async def test_custom_segmentation_and_prompts():
    source = FakeVideoSource(duration=8.0)
    provider = FakeInferenceProvider()
    prompts = PromptTemplates(event_caption="What happens?", summary_max_words=50)
    pipeline = SummarizationPipeline(
        provider,
        sampling_config=SamplingConfig(frame_count=8, segment_count=2),
        prompts=prompts,
    )
    pipeline.set_video_source(source)
    progress = []
    pipeline.subscribe(lambda snapshot: progress.append(snapshot.progress))

    snapshot = await pipeline.start()

    assert len(snapshot.caption_entries) == 2
    assert [len(p["contents"][0]["parts"]) for p in provider.payloads[:2]] == [5, 5]
    assert first_text(provider.payloads[0]) == "What happens?"
    assert "about 50 words" in first_text(provider.payloads[-1])
    assert 40 in progress and 70 in progress


async def test_observer_errors_do_not_break_run(fake_source):
    pipeline = SummarizationPipeline(FakeInferenceProvider())
    pipeline.set_video_source(fake_source)

    def broken(snapshot):
        raise RuntimeError("observer bug")

    pipeline.subscribe(broken)
    snapshot = await pipeline.start()

    assert snapshot.status == PipelineStatus.COMPLETED


async def test_unsubscribe_stops_notifications(fake_source):
    pipeline = SummarizationPipeline(FakeInferenceProvider())
    seen = []
    unsubscribe = pipeline.subscribe(seen.append)
    pipeline.set_video_source(fake_source)
    assert len(seen) == 1

    unsubscribe()
    await pipeline.start()

    assert len(seen) == 1
