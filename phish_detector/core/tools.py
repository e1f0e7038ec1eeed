"""
Tool Dispatcher
================
Maps tool-call names from the model to registered handlers.

A Tool bundles a name, a description shown to the model, a pydantic
model for its arguments and a handler(arguments, run) -> str. Tools are
registered once in a ToolRegistry; the detector never needs to change
when a tool is added.

ToolDispatcher.dispatch() decodes the arguments, runs the handler and
appends exactly one tool-result message to the run's history, linked to
the originating call id. Unknown tool names and undecodable arguments are
fatal for the run.

The only tool shipped is checkUrl, which consults the run's URL map
before calling the scanner so a URL is never scanned twice in one run.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Type

from pydantic import BaseModel, ValidationError

from phish_detector.core.errors import InvalidToolArgumentsError, UnknownToolError
from phish_detector.core.run import DetectionRun
from phish_detector.core.schema_registry import tool_descriptor
from phish_detector.llm.llm_client import ToolCall, tool_message
from phish_detector.schemas import CheckUrlArguments

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    arguments: Type[BaseModel]
    handler: Callable[[BaseModel, DetectionRun], str]

    def descriptor(self) -> dict:
        return tool_descriptor(self.name, self.description, self.arguments)


class ToolRegistry:
    """Name -> Tool mapping, in registration order."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[dict]:
        return [tool.descriptor() for tool in self._tools.values()]


class ToolDispatcher:
    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def dispatch(self, tool_call: ToolCall, run: DetectionRun) -> str:
        """
        Execute one tool call and record its result in the run's history.

        Args:
            tool_call: Tool call emitted by the model
            run: Detection run the call belongs to

        Returns:
            The tool result text appended to the history

        Raises:
            UnknownToolError: If no tool with that name is registered
            InvalidToolArgumentsError: If the arguments do not decode
        """
        logger.info(f"Tool call: {tool_call.name} (id={tool_call.id})")

        tool = self.registry.get(tool_call.name)
        if tool is None:
            raise UnknownToolError(tool_call.name)

        try:
            arguments = tool.arguments.model_validate_json(tool_call.arguments or "{}")
        except ValidationError as e:
            raise InvalidToolArgumentsError(tool_call.name, str(e)) from e

        result = tool.handler(arguments, run)
        run.append(tool_message(tool_call.id, result))
        return result


# ---------- checkUrl ----------

CHECK_URL_DESCRIPTION = (
    "Check a url to see if it is potentially malicious, must be run for every url in an email"
)


def check_url(arguments: CheckUrlArguments, run: DetectionRun) -> str:
    """
    Resolve a URL verdict, reusing an earlier result from the same run.

    The URL is used exactly as the model supplied it; no normalization.
    """
    url = arguments.url

    cached = run.url_checks.get(url)
    if cached is not None:
        logger.info(f"Url already checked in this run, reusing verdict: {url}")
        return cached

    logger.info(f"Checking url: {url}")
    verdict = run.scanner.scan(url)
    run.url_checks[url] = verdict
    logger.info(f"Url check result: {verdict}")
    return verdict


CHECK_URL_TOOL = Tool(
    name="checkUrl",
    description=CHECK_URL_DESCRIPTION,
    arguments=CheckUrlArguments,
    handler=check_url,
)


def default_registry() -> ToolRegistry:
    return ToolRegistry([CHECK_URL_TOOL])
