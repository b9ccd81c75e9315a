from llmrelay.tools import (
    Tool,
    ToolCall,
    ToolCallFunction,
    ToolCallResponse,
    get_required_params,
    parse_properties,
)


# ---------------------------------------------------------------------------
# Schema generation
# ---------------------------------------------------------------------------


class TestParseProperties:
    def test_python_types_map_to_json_schema_types(self):
        def func(a: str, b: int, c: float, d: bool, e: list, f: dict):
            pass

        props = parse_properties(func)
        assert props["a"]["type"] == "string"
        assert props["b"]["type"] == "integer"
        assert props["c"]["type"] == "number"
        assert props["d"]["type"] == "boolean"
        assert props["e"]["type"] == "array"
        assert props["f"]["type"] == "object"

    def test_unannotated_param_defaults_to_string(self):
        def func(x):
            pass

        assert parse_properties(func)["x"]["type"] == "string"

    def test_optional_params_not_required(self):
        def func(name: str, greeting: str = "hi"):
            pass

        assert get_required_params(func) == ["name"]


def test_from_function_wire_format():
    def get_weather(city: str, days: int = 1):
        """Look up the forecast."""

    assert Tool.from_function(get_weather).to_wire() == {
        "type": "function",
        "function": {
            "name": "get_weather",
            "description": "Look up the forecast.",
            "parameters": {
                "type": "object",
                "properties": {
                    "city": {"type": "string"},
                    "days": {"type": "integer"},
                },
                "required": ["city"],
            },
        },
    }


def test_wire_format_omits_missing_description():
    tool = Tool.model_validate({"function": {"name": "noop"}})
    assert tool.to_wire() == {
        "type": "function",
        "function": {"name": "noop", "parameters": {}},
    }


def test_tool_call_response_defaults():
    response = ToolCallResponse()
    assert response.content is None
    assert response.tool_calls == []
    assert response.finish_reason == "stop"


def test_tool_call_shape():
    tc = ToolCall(id="call_0", function=ToolCallFunction(name="f", arguments="{}"))
    assert tc.model_dump() == {
        "id": "call_0",
        "type": "function",
        "function": {"name": "f", "arguments": "{}"},
    }
