from pydantic import BaseModel, ConfigDict, Field

from llmrelay.tools import Tool


class JSONSchemaDefinition(BaseModel):
    """Structured-output schema, in the OpenAI ``json_schema`` shape."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    description: str | None = None
    schema_: dict = Field(alias="schema")
    strict: bool | None = None

    def to_response_format(self) -> dict:
        return {
            "type": "json_schema",
            "json_schema": self.model_dump(by_alias=True, exclude_none=True),
        }


class CompletionOptions(BaseModel):
    """Caller options for ``complete`` and ``stream``.

    ``expects_json`` left as ``None`` means "infer it": a schema implies
    JSON, otherwise the prompt text is checked for JSON markers.
    """

    model_config = ConfigDict(frozen=True)

    max_tokens: int | None = None
    expects_json: bool | None = None
    json_schema: JSONSchemaDefinition | None = None


class ToolCallOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_tokens: int | None = None
    tool_choice: str | dict | None = None


class LLMRequest(BaseModel):
    """One fully prepared call. Built by the adapter, read by providers."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    max_tokens: int | None = None
    expects_json: bool = False
    json_schema: JSONSchemaDefinition | None = None
    tools: tuple[Tool, ...] = ()
    tool_choice: str | dict | None = None
