from collections.abc import Mapping, Sequence

TemplateValue = str | int | float | Sequence[str]


def substitute_template(template: str, variables: Mapping[str, object]) -> str:
    """Replace every ``{{name}}`` placeholder with ``str(value)``."""
    result = template
    for key, value in variables.items():
        result = result.replace("{{" + key + "}}", str(value))
    return result


def prepare_prompt(
    prompt: str, variables: Mapping[str, TemplateValue] | None = None
) -> str:
    """Join sequence values with newlines, then substitute.

    Unknown placeholders are left untouched.
    """
    if not variables:
        return prompt
    processed = {
        key: "\n".join(str(v) for v in value)
        if isinstance(value, Sequence) and not isinstance(value, str)
        else value
        for key, value in variables.items()
    }
    return substitute_template(prompt, processed)
