"""Two-stage conversion state machine.

Transitions are pure functions from one :class:`PipelineState` to the next;
nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from .errors import InvalidTransition


class Stage(str, Enum):
    INPUT = "input"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineState:
    stage: Stage = Stage.INPUT
    source: str = ""
    analysis: str = ""
    output: str = ""
    streaming_text: str = ""
    error: str = ""
    # stage to return to once a failure is dismissed
    resume_stage: Stage | None = None

    @property
    def busy(self) -> bool:
        return self.stage in (Stage.ANALYZING, Stage.GENERATING)


def _require(state: PipelineState, *stages: Stage) -> None:
    if state.stage not in stages:
        allowed = ", ".join(s.value for s in stages)
        raise InvalidTransition(f"cannot leave '{state.stage.value}' here (expected {allowed})")


def _resting(state: PipelineState) -> Stage:
    if state.stage is Stage.FAILED and state.resume_stage is not None:
        return state.resume_stage
    return state.stage


def start_analysis(state: PipelineState) -> PipelineState:
    if _resting(state) is not Stage.INPUT:
        raise InvalidTransition(f"cannot start analysis from '{state.stage.value}'")
    if not state.source.strip():
        raise InvalidTransition("nothing to analyze")
    return replace(
        state,
        stage=Stage.ANALYZING,
        analysis="",
        output="",
        streaming_text="",
        error="",
        resume_stage=None,
    )


def update_stream(state: PipelineState, text: str) -> PipelineState:
    _require(state, Stage.ANALYZING, Stage.GENERATING)
    return replace(state, streaming_text=text)


def finish_analysis(state: PipelineState, analysis: str) -> PipelineState:
    _require(state, Stage.ANALYZING)
    return replace(state, stage=Stage.ANALYZED, analysis=analysis, streaming_text="")


def edit_analysis(state: PipelineState, analysis: str) -> PipelineState:
    _require(state, Stage.ANALYZED)
    return replace(state, analysis=analysis)


def start_generation(state: PipelineState) -> PipelineState:
    if _resting(state) is not Stage.ANALYZED:
        raise InvalidTransition(f"cannot start generation from '{state.stage.value}'")
    return replace(
        state,
        stage=Stage.GENERATING,
        output="",
        streaming_text="",
        error="",
        resume_stage=None,
    )


def finish_generation(state: PipelineState, output: str) -> PipelineState:
    _require(state, Stage.GENERATING)
    return replace(state, stage=Stage.COMPLETE, output=output, streaming_text="")


def fail(state: PipelineState, message: str) -> PipelineState:
    """Abort the running stage; partial streamed text is dropped."""
    _require(state, Stage.ANALYZING, Stage.GENERATING)
    if state.stage is Stage.ANALYZING:
        resume, prefix = Stage.INPUT, "Analysis failed"
    else:
        resume, prefix = Stage.ANALYZED, "Code generation failed"
    return replace(
        state,
        stage=Stage.FAILED,
        resume_stage=resume,
        error=f"{prefix}: {message}",
        streaming_text="",
    )


def dismiss_error(state: PipelineState) -> PipelineState:
    _require(state, Stage.FAILED)
    return replace(state, stage=_resting(state), resume_stage=None, error="")


def reset(state: PipelineState) -> PipelineState:
    """Start over, keeping the source text."""
    return PipelineState(source=state.source)
