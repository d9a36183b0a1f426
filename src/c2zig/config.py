"""Settings loader for the converter.

Reads ``~/.c2zig.yaml`` (or ``$C2ZIG_CONFIG_PATH``), validates its structure
and derives the per-call :class:`ChatConfig` records the streaming client
consumes. Settings are read-only once parsed; every stage builds a fresh
``ChatConfig`` from them.
"""

from __future__ import annotations

from pathlib import Path
import logging
import os
from typing import Any, Dict, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator, model_validator

from .prompts import (
    DEFAULT_ANALYSIS_PROMPT,
    DEFAULT_GENERATION_PROMPT,
    DEFAULT_SYSTEM_PROMPT,
    render_analysis_prompt,
    render_generation_prompt,
)

logger = logging.getLogger(__name__)


class EndpointPreset(BaseModel):
    name: str
    url: str
    requiresKey: bool = False


PRESET_ENDPOINTS: Dict[str, EndpointPreset] = {
    p.name: p
    for p in (
        EndpointPreset(name="Pollinations AI", url="https://text.pollinations.ai/openai"),
        EndpointPreset(name="OpenRouter", url="https://openrouter.ai/api/v1/chat/completions", requiresKey=True),
        EndpointPreset(name="OpenAI", url="https://api.openai.com/v1/chat/completions", requiresKey=True),
        EndpointPreset(name="Custom", url=""),
    )
}

DEFAULT_PRESET = "Pollinations AI"


class ChatConfig(BaseModel):
    """Everything needed to issue one streamed chat request."""

    model_config = ConfigDict(frozen=True)

    endpoint: HttpUrl
    model: str = Field(min_length=1)
    prompt: str
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    api_key: str | None = None


class AuthConfig(BaseModel):
    type: Literal["none", "apikey"] = "none"
    key: str | None = None
    envKey: str | None = None

    @property
    def api_key(self) -> str | None:
        if self.type != "apikey":
            return None
        if self.key:
            return self.key
        if self.envKey:
            return os.getenv(self.envKey) or None
        return None

    @model_validator(mode="after")
    def _check_key(self) -> "AuthConfig":
        if self.type == "apikey" and not self.api_key:
            if self.envKey:
                raise ValueError(f"Environment variable '{self.envKey}' not set or empty")
            raise ValueError("apikey auth requires 'key' or 'envKey'")
        return self


class ServiceCfg(BaseModel):
    port: int = 8095


class ConversionCfg(BaseModel):
    safetyLevel: Literal["permissive", "balanced", "strict"] = "strict"
    generateTests: bool = True
    preserveComments: bool = True


class PromptsCfg(BaseModel):
    analysis: str = DEFAULT_ANALYSIS_PROMPT
    generation: str = DEFAULT_GENERATION_PROMPT


class RootConfig(BaseModel):
    service: ServiceCfg | None = None
    preset: str = DEFAULT_PRESET
    endpoint: HttpUrl | None = None
    auth: AuthConfig = Field(default_factory=AuthConfig)
    model: str = "openai"
    systemPrompt: str = DEFAULT_SYSTEM_PROMPT
    conversion: ConversionCfg = Field(default_factory=ConversionCfg)
    prompts: PromptsCfg = Field(default_factory=PromptsCfg)

    @field_validator("preset")
    @classmethod
    def _known_preset(cls, v: str) -> str:
        if v not in PRESET_ENDPOINTS:
            raise ValueError(f"Unknown preset '{v}'; expected one of {sorted(PRESET_ENDPOINTS)}")
        return v

    @field_validator("model")
    @classmethod
    def _model_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("model must not be empty")
        return v

    @model_validator(mode="after")
    def _endpoint_for_custom(self) -> "RootConfig":
        if self.endpoint is None and not PRESET_ENDPOINTS[self.preset].url:
            raise ValueError(f"Preset '{self.preset}' requires an explicit 'endpoint'")
        return self

    @property
    def endpoint_url(self) -> str:
        if self.endpoint is not None:
            return str(self.endpoint)
        return PRESET_ENDPOINTS[self.preset].url

    @property
    def requires_key(self) -> bool:
        return PRESET_ENDPOINTS[self.preset].requiresKey

    def credential(self) -> str | None:
        """Return the bearer credential for the next request, if any."""
        key = self.auth.api_key
        if key is None and self.requires_key:
            logger.warning("Preset '%s' expects an API key but no auth is configured", self.preset)
        return key

    def analysis_config(self, code: str, credential: str | None = None) -> ChatConfig:
        prompt = render_analysis_prompt(
            self.prompts.analysis,
            code,
            generate_tests=self.conversion.generateTests,
        )
        return self._chat_config(prompt, credential)

    def generation_config(self, code: str, analysis: str, credential: str | None = None) -> ChatConfig:
        prompt = render_generation_prompt(
            self.prompts.generation,
            code,
            analysis,
            safety_level=self.conversion.safetyLevel,
            generate_tests=self.conversion.generateTests,
            preserve_comments=self.conversion.preserveComments,
        )
        return self._chat_config(prompt, credential)

    def _chat_config(self, prompt: str, credential: str | None) -> ChatConfig:
        return ChatConfig(
            endpoint=self.endpoint_url,  # type: ignore[arg-type]
            model=self.model,
            prompt=prompt,
            system_prompt=self.systemPrompt,
            api_key=credential,
        )


def parse_config(data: Dict[str, Any]) -> RootConfig:
    """Validate an already-loaded settings mapping."""
    return RootConfig.model_validate(data)


def load_config(path: str | Path) -> RootConfig:
    """Parse the YAML settings file at *path*."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    with path.open("rt", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")

    return parse_config(data)


def load_config_or_default(path: str | Path | None = None) -> RootConfig:
    """Like :func:`load_config` but falls back to built-in defaults when the file is absent."""
    try:
        return load_config(path or default_config_path())
    except FileNotFoundError:
        return RootConfig()


def default_config_path() -> Path:
    env_path = os.getenv("C2ZIG_CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return Path.home() / ".c2zig.yaml"
