import inspect
from typing import Callable, Literal

from pydantic import BaseModel, Field


class FunctionDefinition(BaseModel):
    name: str
    description: str | None = None
    parameters: dict = Field(default_factory=dict)


class Tool(BaseModel):
    """A function the model may call, in the OpenAI ``tools`` shape."""

    type: Literal["function"] = "function"
    function: FunctionDefinition

    @classmethod
    def from_function(cls, func: Callable) -> "Tool":
        """Build a tool definition from a Python callable's signature."""
        return cls(
            function=FunctionDefinition(
                name=func.__name__,
                description=inspect.getdoc(func),
                parameters={
                    "type": "object",
                    "properties": parse_properties(func),
                    "required": get_required_params(func),
                },
            )
        )

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)


def normalize_to_json_type(python_type_str: str) -> str:
    type_mapping = {
        'str': 'string',
        'int': 'integer',
        'float': 'number',
        'bool': 'boolean',
        'NoneType': 'null',
        'dict': 'object',
        'list': 'array',
        'tuple': 'array',  # closest equivalent
        'set': 'array',    # closest equivalent
    }
    return type_mapping.get(python_type_str, 'string')


def parse_properties(func: Callable) -> dict[str, dict[str, str]]:
    signature = inspect.signature(func)
    properties = {}
    for param_name, param in signature.parameters.items():
        annotation = param.annotation
        if annotation is inspect.Parameter.empty:
            type_name = 'str'
        else:
            type_name = getattr(annotation, '__name__', str(annotation))
        properties[param_name] = {
            "type": normalize_to_json_type(type_name),
        }
    return properties


def get_required_params(func: Callable) -> list[str]:
    signature = inspect.signature(func)
    return [
        name
        for name, param in signature.parameters.items()
        if param.default is inspect.Parameter.empty
    ]


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

FinishReasonName = Literal["stop", "tool_calls", "length", "content_filter"]


class ToolCallFunction(BaseModel):
    name: str
    arguments: str = ""


class ToolCall(BaseModel):
    """A resolved tool call. ``arguments`` is a JSON-encoded string."""

    id: str
    type: Literal["function"] = "function"
    function: ToolCallFunction


class ToolCallResponse(BaseModel):
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    finish_reason: FinishReasonName = "stop"
