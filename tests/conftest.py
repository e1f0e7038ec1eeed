from __future__ import annotations

import json

import pytest

from phish_detector.core.detector import PhishingDetector
from phish_detector.core.url_scanner import UrlScanner
from phish_detector.llm.llm_client import ChatCompletion, FinishSignal, ToolCall


class ScriptedChatClient:
    """Returns pre-scripted completions and records what each round sent."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls: list[list[dict]] = []
        self.options = []

    def complete_chat(self, messages, options):
        self.calls.append([dict(m) for m in messages])
        self.options.append(options)
        if not self.responses:
            raise AssertionError("chat client called more times than scripted")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class CountingScanner(UrlScanner):
    name = "counting"

    def __init__(self, verdicts: dict[str, str] | None = None, default: str = "URL is malicious"):
        self.verdicts = verdicts or {}
        self.default = default
        self.calls: list[str] = []

    def scan(self, url: str) -> str:
        self.calls.append(url)
        return self.verdicts.get(url, self.default)


def verdict_payload(suspicious: bool = True, items: list[dict] | None = None,
                    short: str = "The email asks you to log in through an unknown link.") -> dict:
    return {
        "suspicious": suspicious,
        "shortDescription": short,
        "detectedItems": items if items is not None else [],
    }


def completed(payload: dict | str) -> ChatCompletion:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return ChatCompletion(finish_signal=FinishSignal.COMPLETED, finish_reason="stop", content=text)


def check_url_calls(*urls: str, prefix: str = "call") -> ChatCompletion:
    calls = tuple(
        ToolCall(id=f"{prefix}_{i}", name="checkUrl", arguments=json.dumps({"url": url}))
        for i, url in enumerate(urls)
    )
    return ChatCompletion(
        finish_signal=FinishSignal.TOOL_CALLS_REQUESTED, finish_reason="tool_calls", tool_calls=calls
    )


@pytest.fixture
def scanner():
    return CountingScanner()


@pytest.fixture
def make_detector(scanner):
    def _make(responses, **kwargs):
        client = ScriptedChatClient(responses)
        return PhishingDetector(client, scanner, **kwargs), client

    return _make
