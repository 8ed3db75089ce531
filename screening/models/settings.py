"""
Service settings, read from the environment (and ``.env``)
"""
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from screening.utils.exceptions import ConfigurationError


class LLMSettings(BaseModel):
    """LLM Configuration Settings"""
    base_url: str = Field(default="http://localhost:11434", description="Ollama base URL")
    model_name: str = Field(default="llama3.1:8b", description="Model for single-profile prompts")
    batch_model_name: Optional[str] = Field(default=None, description="Model for batch prompts (defaults to model_name)")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0, description="Generation temperature")
    max_tokens: Optional[int] = Field(default=1000, ge=1, description="Maximum tokens for single-profile completions")
    timeout: Optional[float] = Field(default=120, gt=0, description="Request timeout in seconds")

    @property
    def batch_model(self) -> str:
        return self.batch_model_name or self.model_name


class ProcessingSettings(BaseModel):
    """Processing and Performance Configuration"""
    batch_size: int = Field(default=5, ge=1, le=100, description="Profiles per batch prompt")
    max_concurrent: int = Field(default=5, ge=1, le=200, description="Maximum in-flight LLM calls")
    dispatch_delay: float = Field(default=0.05, ge=0.0, le=60.0, description="Pause after each completed unit, seconds")
    profiles_path: str = Field(default="data/form-submissions.json", description="Profile data file")
    profile_limit: int = Field(default=1000, ge=1, description="Maximum number of profiles loaded")


class ScreeningSettings(BaseModel):
    llm: LLMSettings = Field(default_factory=LLMSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)


_ENV_FIELDS = {
    "OLLAMA_BASE_URL": ("llm", "base_url"),
    "LLM_MODEL": ("llm", "model_name"),
    "LLM_BATCH_MODEL": ("llm", "batch_model_name"),
    "LLM_TEMPERATURE": ("llm", "temperature"),
    "LLM_MAX_TOKENS": ("llm", "max_tokens"),
    "LLM_TIMEOUT": ("llm", "timeout"),
    "BATCH_SIZE": ("processing", "batch_size"),
    "MAX_CONCURRENT": ("processing", "max_concurrent"),
    "PROFILES_PATH": ("processing", "profiles_path"),
    "PROFILE_LIMIT": ("processing", "profile_limit"),
}


def load_settings() -> ScreeningSettings:
    """Build settings from environment variables, validating every value."""
    load_dotenv()

    sections = {"llm": {}, "processing": {}}
    for env_key, (section, field) in _ENV_FIELDS.items():
        value = os.getenv(env_key)
        if value not in (None, ""):
            sections[section][field] = value

    delay_ms = os.getenv("DISPATCH_DELAY_MS")
    if delay_ms not in (None, ""):
        try:
            sections["processing"]["dispatch_delay"] = float(delay_ms) / 1000.0
        except ValueError as e:
            raise ConfigurationError("DISPATCH_DELAY_MS must be a number", config_key="DISPATCH_DELAY_MS",
                                     config_value=delay_ms, cause=e) from e

    try:
        return ScreeningSettings(
            llm=LLMSettings(**sections["llm"]),
            processing=ProcessingSettings(**sections["processing"]),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e.error_count()} error(s)",
                                 details={"errors": e.errors(include_url=False)}, cause=e) from e
