from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from c2zig.config import (
    RootConfig,
    default_config_path,
    load_config,
    load_config_or_default,
    parse_config,
)
from c2zig.prompts import DEFAULT_ANALYSIS_PROMPT, DEFAULT_SYSTEM_PROMPT


def test_load_config_file_not_found(tmp_path: Path) -> None:
    """Test FileNotFoundError when config file does not exist."""
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "non_existent.yaml")


def test_load_config_or_default_missing_file(tmp_path: Path) -> None:
    cfg = load_config_or_default(tmp_path / "missing.yaml")
    assert cfg.preset == RootConfig().preset == "Pollinations AI"
    assert cfg.endpoint_url == "https://text.pollinations.ai/openai"
    assert cfg.model == "openai"


def test_load_config_from_yaml(tmp_path: Path) -> None:
    path = tmp_path / ".c2zig.yaml"
    path.write_text(
        yaml.dump(
            {
                "preset": "OpenRouter",
                "model": "anthropic/claude-3.5-sonnet",
                "auth": {"type": "apikey", "key": "sk-or"},
                "conversion": {"safetyLevel": "balanced", "generateTests": False},
                "prompts": {"generation": "custom {{CODE}}"},
            }
        )
    )
    cfg = load_config(path)
    assert cfg.endpoint_url == "https://openrouter.ai/api/v1/chat/completions"
    assert cfg.requires_key
    assert cfg.conversion.safetyLevel == "balanced"
    assert cfg.conversion.preserveComments is True
    assert cfg.prompts.generation == "custom {{CODE}}"
    assert cfg.prompts.analysis == DEFAULT_ANALYSIS_PROMPT


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_parse_config_valid_env_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """A valid config resolves an API key from the environment."""
    monkeypatch.setenv("TEST_ENV_KEY", "abc123")
    cfg = parse_config({"auth": {"type": "apikey", "envKey": "TEST_ENV_KEY"}})
    assert cfg.auth.api_key == "abc123"
    assert cfg.credential() == "abc123"


def test_parse_config_apikey_without_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """An apikey auth entry without key or envKey should fail."""
    monkeypatch.delenv("MISSING", raising=False)
    with pytest.raises(ValidationError):
        parse_config({"auth": {"type": "apikey", "envKey": "MISSING"}})
    with pytest.raises(ValidationError):
        parse_config({"auth": {"type": "apikey"}})


def test_parse_config_unsupported_auth_type() -> None:
    with pytest.raises(ValidationError):
        parse_config({"auth": {"type": "azure"}})


def test_parse_config_no_auth() -> None:
    cfg = parse_config({})
    assert cfg.auth.type == "none"
    assert cfg.auth.api_key is None
    assert cfg.credential() is None


def test_credential_warns_when_preset_needs_key(caplog: pytest.LogCaptureFixture) -> None:
    cfg = parse_config({"preset": "OpenAI"})
    with caplog.at_level("WARNING"):
        assert cfg.credential() is None
    assert "expects an API key" in caplog.text


def test_credential_static_key_no_warning(caplog: pytest.LogCaptureFixture) -> None:
    cfg = parse_config({"preset": "OpenAI", "auth": {"type": "apikey", "key": "sk-1"}})
    with caplog.at_level("WARNING"):
        assert cfg.credential() == "sk-1"
    assert caplog.text == ""


def test_parse_config_unknown_preset() -> None:
    with pytest.raises(ValidationError):
        parse_config({"preset": "Nope"})


def test_parse_config_custom_requires_endpoint() -> None:
    with pytest.raises(ValidationError):
        parse_config({"preset": "Custom"})
    cfg = parse_config({"preset": "Custom", "endpoint": "http://localhost:11434/v1/chat/completions"})
    assert cfg.endpoint_url == "http://localhost:11434/v1/chat/completions"


def test_parse_config_endpoint_overrides_preset() -> None:
    cfg = parse_config({"preset": "OpenAI", "endpoint": "https://proxy.internal/v1/chat/completions"})
    assert cfg.endpoint_url == "https://proxy.internal/v1/chat/completions"


def test_parse_config_empty_model() -> None:
    with pytest.raises(ValidationError):
        parse_config({"model": "  "})


def test_parse_config_bad_safety_level() -> None:
    with pytest.raises(ValidationError):
        parse_config({"conversion": {"safetyLevel": "reckless"}})


def test_parse_config_service_section() -> None:
    cfg = parse_config({"service": {"port": 1234}})
    assert cfg.service is not None
    assert cfg.service.port == 1234


def test_parse_config_service_port_default() -> None:
    cfg = parse_config({"service": {}})
    assert cfg.service is not None
    assert cfg.service.port == 8095


def test_parse_config_service_missing() -> None:
    assert parse_config({}).service is None


def test_analysis_config_is_built_fresh() -> None:
    cfg = parse_config({"conversion": {"generateTests": False}})
    chat = cfg.analysis_config("int main() {}", "tok")

    assert str(chat.endpoint) == "https://text.pollinations.ai/openai"
    assert chat.model == "openai"
    assert chat.api_key == "tok"
    assert chat.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert "int main() {}" in chat.prompt
    assert "Test Strategy" not in chat.prompt
    assert "{{" not in chat.prompt


def test_generation_config_threads_analysis() -> None:
    cfg = parse_config({"conversion": {"safetyLevel": "permissive", "preserveComments": False}})
    chat = cfg.generation_config("void f(void);", "PLAN-TEXT")

    assert chat.api_key is None
    assert "PLAN-TEXT" in chat.prompt
    assert "void f(void);" in chat.prompt
    assert "Safety Level: permissive" in chat.prompt
    assert "Allow some unsafe for direct C interop" in chat.prompt
    assert "Basic tests using std.testing" in chat.prompt
    assert "Preserve original intent" not in chat.prompt


def test_default_config_path_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("C2ZIG_CONFIG_PATH", "/tmp/custom.yaml")
    assert default_config_path() == Path("/tmp/custom.yaml")


def test_default_config_path_home(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("C2ZIG_CONFIG_PATH", raising=False)
    monkeypatch.setenv("HOME", "/tmp/home")
    assert default_config_path() == Path("/tmp/home/.c2zig.yaml")
