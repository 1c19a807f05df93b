"""
Synthesis phase shared by the Swarm and Hybrid engines.

The gather phase collects ``SourcedResponse`` values; the synthesize phase is
a second orchestrator call with a constrained policy (Gemini first, complex
mode off) at synthesis depth 1, so it can never fan out again.
"""

from typing import NamedTuple, Optional, Sequence

from relay.models.policy import ChunkCallback, ExecutionRequest, PolicySettings, ProviderName

SWARM_SYNTHESIS_INSTRUCTION = "You are the Chief Intelligence Synthesizer."
HYBRID_SYNTHESIS_INSTRUCTION = (
    "You are a Super-Intelligence Synthesis Engine. "
    "Return one unified answer that combines the strongest parts of every response."
)


class SourcedResponse(NamedTuple):
    source: str
    text: str


def build_swarm_synthesis_prompt(prompt: str, responses: Sequence[SourcedResponse]) -> str:
    sections = "\n\n".join(
        f"--- MODEL {i}: {r.source} ---\n{r.text}" for i, r in enumerate(responses, 1)
    )
    return (
        "You are a consensus engine.\n"
        f"I asked {len(responses)} different AI models the following prompt: \"{prompt}\".\n\n"
        f"Here are their responses:\n{sections}\n\n"
        "TASK:\n"
        "1. Analyze all responses.\n"
        "2. Identify the most correct, detailed and logical information.\n"
        "3. Resolve any conflicts between the responses using your own judgment.\n"
        "4. Write ONE comprehensive response that merges the strengths of all of them.\n"
        "5. Do not mention individual models (for example \"Model 1 said\"); "
        "just give the final answer."
    )


def build_hybrid_synthesis_prompt(responses: Sequence[SourcedResponse]) -> str:
    sections = "\n\n".join(f"--- {r.source} ---\n{r.text}" for r in responses)
    return f"Synthesize these AI responses into one perfect answer:\n\n{sections}"


def synthesis_request(
    policy: PolicySettings,
    prompt: str,
    system_instruction: str,
    on_chunk: Optional[ChunkCallback] = None,
) -> ExecutionRequest:
    """Build the constrained request for the synthesize phase."""
    constrained = policy.model_copy(
        update={"provider": ProviderName.GEMINI, "complex_task_mode": False}
    )
    return ExecutionRequest(
        prompt=prompt,
        history=[],
        policy=constrained,
        system_instruction=system_instruction,
        on_chunk=on_chunk,
        synthesis_depth=1,
    )
