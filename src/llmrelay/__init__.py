from llmrelay.adapter import Adapter
from llmrelay.config import BackendConfig, MLXConfig, OllamaConfig, OpenAIConfig
from llmrelay.errors import (
    AuthFailure,
    EmptyResponse,
    ExtractionError,
    HTTPError,
    InvalidJSON,
    LLMError,
    NoJSONFound,
    RateLimited,
    TimedOut,
    TransportError,
    UnsupportedOperation,
)
from llmrelay.events import (
    CallStarted,
    Finished,
    FirstToken,
    ProgressEvent,
    RetryScheduled,
    log_observer,
)
from llmrelay.gate import ConcurrencyGate
from llmrelay.instrumentation import instrument, uninstrument
from llmrelay.provider import (
    MLXProvider,
    ModelProvider,
    OllamaProvider,
    OpenAIProvider,
)
from llmrelay.request import (
    CompletionOptions,
    JSONSchemaDefinition,
    ToolCallOptions,
)
from llmrelay.retry import RetryPolicy
from llmrelay.sanitize import clean, extract_json, extract_json_array
from llmrelay.tools import Tool, ToolCall, ToolCallResponse


__all__ = [
    "Adapter",
    "AuthFailure",
    "BackendConfig",
    "CallStarted",
    "CompletionOptions",
    "ConcurrencyGate",
    "EmptyResponse",
    "ExtractionError",
    "Finished",
    "FirstToken",
    "HTTPError",
    "InvalidJSON",
    "JSONSchemaDefinition",
    "LLMError",
    "MLXConfig",
    "MLXProvider",
    "ModelProvider",
    "NoJSONFound",
    "OllamaConfig",
    "OllamaProvider",
    "OpenAIConfig",
    "OpenAIProvider",
    "ProgressEvent",
    "RateLimited",
    "RetryPolicy",
    "RetryScheduled",
    "TimedOut",
    "Tool",
    "ToolCall",
    "ToolCallOptions",
    "ToolCallResponse",
    "TransportError",
    "UnsupportedOperation",
    "clean",
    "extract_json",
    "extract_json_array",
    "instrument",
    "log_observer",
    "uninstrument",
]
