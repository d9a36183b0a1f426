"""Runs the analysis and generation stages against the chat endpoint."""

from __future__ import annotations

import logging
from typing import Callable

from . import pipeline
from .client import ChatStreamClient
from .config import ChatConfig, RootConfig
from .errors import C2ZigError
from .pipeline import PipelineState

logger = logging.getLogger(__name__)

UpdateSink = Callable[[str], None]


class Converter:
    """Holds the pipeline state for one conversion session."""

    def __init__(self, config: RootConfig, client: ChatStreamClient, source: str = "") -> None:
        self._config = config
        self._client = client
        self.state = PipelineState(source=source)

    async def analyze(self, on_update: UpdateSink | None = None) -> str:
        self.state = pipeline.start_analysis(self.state)
        source = self.state.source
        result = await self._run(lambda cred: self._config.analysis_config(source, cred), on_update)
        self.state = pipeline.finish_analysis(self.state, result)
        return result

    async def generate(self, on_update: UpdateSink | None = None) -> str:
        self.state = pipeline.start_generation(self.state)
        source, analysis = self.state.source, self.state.analysis
        result = await self._run(lambda cred: self._config.generation_config(source, analysis, cred), on_update)
        self.state = pipeline.finish_generation(self.state, result)
        return result

    async def convert(self, on_update: UpdateSink | None = None) -> str:
        """Run both stages back to back and return the generated code."""
        await self.analyze(on_update)
        return await self.generate(on_update)

    async def _run(self, make_config: Callable[[str | None], ChatConfig], on_update: UpdateSink | None) -> str:
        def _publish(text: str) -> None:
            self.state = pipeline.update_stream(self.state, text)
            if on_update is not None:
                on_update(text)

        try:
            return await self._client.complete(make_config(self._config.credential()), _publish)
        except BaseException as exc:
            # the stage must never stay busy, whatever interrupted it
            self.state = pipeline.fail(self.state, str(exc) or type(exc).__name__)
            if isinstance(exc, C2ZigError):
                logger.error("%s", self.state.error)
            raise
