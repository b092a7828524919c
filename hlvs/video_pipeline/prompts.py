from dataclasses import dataclass

"""
Prompts for the three summarization stages
"""

# Stage 1: event-level captioning, sent together with a segment's frames
EVENT_CAPTION_PROMPT = """
Describe in detail the specific events taking place in this video segment. Include:
1. Which people or objects appear;
2. What concrete actions they are performing;
3. How the scene or environment changes.
Describe only the facts. Do not give any artistic evaluation.
"""

# Stage 2: logical chain construction over the evidence block
LOGICAL_CHAIN_PROMPT = """
Using the detailed descriptions of the video segments below, lay out the logical thread of the video:
1. Starting point: what state is the video in when it begins?
2. Development: which key continuous actions or changes take place?
3. Causal links: how are the actions in consecutive segments logically connected?

Base the outline on facts only. Do not analyse the filming technique.

Segment descriptions:
{evidence}
"""

# Stage 3: hierarchical synthesis of the final summary
SYNTHESIS_PROMPT = """
Based on the logical chain below, write an objective summary of the video of about {max_words} words.
Requirements:
1. Follow an opening, development, turn and conclusion structure, but describe the concrete on-screen content.
2. Do not use abstract art-criticism vocabulary such as "narrative function", "aesthetic meaning" or "build-up".
3. Focus on what the people did, what the environment turned into, and how things ended.
4. Every sentence must be supported by a fact in the logical chain.

Logical chain:
{logical_chain}
"""

# Substituted when a stage-1 response carries no text
CAPTION_EXTRACTION_FAILED = "Extraction failed"


@dataclass(frozen=True)
class PromptTemplates:
    """Prompt set used by SummarizationPipeline. Override any field to customise."""
    event_caption: str = EVENT_CAPTION_PROMPT
    logical_chain: str = LOGICAL_CHAIN_PROMPT
    synthesis: str = SYNTHESIS_PROMPT
    caption_sentinel: str = CAPTION_EXTRACTION_FAILED
    summary_max_words: int = 200

    def render_logical_chain(self, evidence: str) -> str:
        return self.logical_chain.format(evidence=evidence)

    def render_synthesis(self, logical_chain: str) -> str:
        return self.synthesis.format(
            logical_chain=logical_chain,
            max_words=self.summary_max_words,
        )
