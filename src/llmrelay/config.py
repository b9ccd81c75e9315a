"""Constructor-time configuration for each backend.

All configs are frozen: an adapter's endpoint, model, timeout and
concurrency limit never change after it is built.
"""

import os

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

REASONING_MODEL_MARKERS = ("gpt-5", "o1", "o3")


class BackendConfig(BaseModel):
    """Settings shared by every backend.

    Args:
        model: Model identifier sent with each request.
        endpoint: Base URL; a trailing slash is dropped.
        timeout: Seconds allowed for one transport exchange.
        concurrency: Maximum in-flight requests for this adapter.
        max_attempts: Retry budget for non-streaming calls.
        backoff_unit: Seconds per backoff unit between attempts.
    """

    model_config = ConfigDict(frozen=True)

    model: str
    endpoint: str
    timeout: float = Field(default=600.0, gt=0)
    concurrency: int = Field(default=1, ge=1)
    max_attempts: int = Field(default=1, ge=1)
    backoff_unit: float = Field(default=1.0, ge=0)

    @field_validator("endpoint")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class OpenAIConfig(BackendConfig):
    endpoint: str = "https://api.openai.com/v1"
    api_key: str | None = Field(default=None, repr=False)
    timeout: float | None = None
    max_attempts: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def fill_defaults(self):
        # Frozen model: defaults are resolved once, at construction.
        if self.api_key is None:
            object.__setattr__(self, "api_key", os.getenv("OPENAI_API_KEY"))
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.timeout is None:
            is_reasoning = any(m in self.model for m in REASONING_MODEL_MARKERS)
            object.__setattr__(self, "timeout", 120.0 if is_reasoning else 30.0)
        return self


class MLXConfig(BackendConfig):
    endpoint: str = "http://localhost:11434/v1"


class OllamaConfig(BackendConfig):
    endpoint: str = "http://localhost:11434"
    num_ctx: int = Field(default=32768, ge=1)
    num_predict: int = Field(default=4096, ge=1)
