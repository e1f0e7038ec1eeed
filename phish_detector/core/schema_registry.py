"""
Schema Registry
================
Derives JSON Schemas from pydantic models and wraps them in the payloads
the chat-completions API expects:

- response_format(): strict structured-output constraint for the final
  answer (DetectionVerdict).
- tool_descriptor(): function-tool description for each registered tool,
  with a permissive (non-strict) argument schema.

Pure functions, no state. The same model always yields the same schema.
"""

from typing import Any, Type

from pydantic import BaseModel


def json_schema(model: Type[BaseModel]) -> dict[str, Any]:
    """Return the JSON Schema of a pydantic model."""
    return model.model_json_schema()


def response_format(model: Type[BaseModel], name: str, description: str) -> dict[str, Any]:
    """
    Build a strict json_schema response format for the model's final answer.

    Args:
        model: Result model (must forbid extra fields)
        name: Schema name shown to the model
        description: Short description of the schema

    Returns:
        Dict suitable for the "response_format" request field
    """
    return {
        "type": "json_schema",
        "json_schema": {
            "name": name,
            "description": description,
            "schema": json_schema(model),
            "strict": True,
        },
    }


def tool_descriptor(name: str, description: str, arguments: Type[BaseModel]) -> dict[str, Any]:
    """
    Describe a callable function tool to the model.

    Args:
        name: Tool name the model will call
        description: What the tool does and when to call it
        arguments: Pydantic model of the tool's arguments

    Returns:
        Dict suitable for an entry of the "tools" request field
    """
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": json_schema(arguments),
            "strict": False,
        },
    }
