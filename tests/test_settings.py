import pytest

from screening.models.settings import LLMSettings, load_settings
from screening.utils.exceptions import ConfigurationError, NotFoundError, ValidationError, map_to_http_exception


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("OLLAMA_BASE_URL", "LLM_MODEL", "LLM_BATCH_MODEL", "LLM_TEMPERATURE", "LLM_MAX_TOKENS",
                "LLM_TIMEOUT", "BATCH_SIZE", "MAX_CONCURRENT", "PROFILES_PATH", "PROFILE_LIMIT",
                "DISPATCH_DELAY_MS"):
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    settings = load_settings()

    assert settings.llm.base_url == "http://localhost:11434"
    assert settings.processing.batch_size == 5
    assert settings.processing.max_concurrent == 5
    assert settings.processing.dispatch_delay == 0.05
    assert settings.processing.profile_limit == 1000


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LLM_MODEL", "qwen2.5:7b")
    monkeypatch.setenv("MAX_CONCURRENT", "12")
    monkeypatch.setenv("DISPATCH_DELAY_MS", "250")

    settings = load_settings()

    assert settings.llm.model_name == "qwen2.5:7b"
    assert settings.llm.batch_model == "qwen2.5:7b"
    assert settings.processing.max_concurrent == 12
    assert settings.processing.dispatch_delay == 0.25


def test_batch_model_override():
    assert LLMSettings(model_name="small", batch_model_name="large").batch_model == "large"


@pytest.mark.parametrize("key,value", [
    ("MAX_CONCURRENT", "0"),
    ("BATCH_SIZE", "many"),
    ("LLM_TEMPERATURE", "9"),
    ("DISPATCH_DELAY_MS", "soon"),
])
def test_invalid_values_raise_configuration_error(monkeypatch, key, value):
    monkeypatch.setenv(key, value)

    with pytest.raises(ConfigurationError):
        load_settings()


def test_exception_status_mapping():
    assert map_to_http_exception(ValidationError("bad")).status_code == 400
    assert map_to_http_exception(ConfigurationError("bad")).status_code == 400

    http_exc = map_to_http_exception(NotFoundError("Rubric x not found", resource="rubric", resource_id="x"))
    assert http_exc.status_code == 404
    assert http_exc.detail["error"]["details"] == {"resource": "rubric", "resource_id": "x"}
    assert http_exc.detail["message"] == "Rubric x not found"
