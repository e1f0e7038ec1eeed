import json

import pytest
from pydantic import ValidationError

from conftest import check_url_calls, completed, verdict_payload
from phish_detector.core.errors import (
    ExceededMaxRoundsError,
    InvalidToolArgumentsError,
    MalformedResultError,
    ModelProviderError,
    RunDeadlineExceededError,
    UnexpectedFinishReasonError,
    UnknownToolError,
)
from phish_detector.core.run import RunState
from phish_detector.llm.llm_client import ChatCompletion, FinishSignal, ToolCall


EMAIL = "Subject: Account locked\n\nVerify now at http://evil.example/login"


def test_immediate_verdict_without_urls(make_detector, scanner):
    payload = verdict_payload(
        suspicious=False,
        short="Nothing in the email looks like phishing.",
    )
    detector, client = make_detector([completed(payload)])

    report = detector.detect("Hi team, lunch is at noon.")

    assert report.urlChecks == {}
    assert report.suspicious is False
    assert report.shortDescription == payload["shortDescription"]
    assert report.detectedItems == ()
    assert scanner.calls == []
    assert len(client.calls) == 1


def test_seeded_history_is_system_then_user(make_detector):
    detector, client = make_detector([completed(verdict_payload())])

    detector.detect(EMAIL)

    first = client.calls[0]
    assert [m["role"] for m in first] == ["system", "user"]
    assert first[1]["content"] == EMAIL
    assert "checkUrl" in first[0]["content"]


def test_check_url_then_verdict(make_detector, scanner):
    items = [{
        "title": "Credential link",
        "description": "Link to http://evil.example/login",
        "reasoning": "The URL check reported it as malicious",
    }]
    detector, client = make_detector([
        check_url_calls("http://evil.example/login"),
        completed(verdict_payload(suspicious=True, items=items)),
    ])

    report = detector.detect(EMAIL)

    assert report.urlChecks == {"http://evil.example/login": "URL is malicious"}
    assert report.suspicious is True
    assert report.detectedItems[0].title == "Credential link"
    assert scanner.calls == ["http://evil.example/login"]

    second = client.calls[1]
    assert [m["role"] for m in second] == ["system", "user", "assistant", "tool"]
    assert second[2]["tool_calls"][0]["function"]["name"] == "checkUrl"
    assert second[3] == {"role": "tool", "tool_call_id": "call_0", "content": "URL is malicious"}


def test_repeated_url_across_rounds_is_scanned_once(make_detector, scanner):
    url = "http://evil.example/login"
    detector, client = make_detector([
        check_url_calls(url, prefix="first"),
        check_url_calls(url, prefix="second"),
        completed(verdict_payload()),
    ])

    report = detector.detect(EMAIL)

    assert scanner.calls == [url]
    tool_results = [m for m in client.calls[-1] if m["role"] == "tool"]
    assert [m["tool_call_id"] for m in tool_results] == ["first_0", "second_0"]
    assert tool_results[0]["content"] == tool_results[1]["content"]
    assert report.urlChecks == {url: "URL is malicious"}


def test_one_entry_per_distinct_url_in_first_seen_order(make_detector, scanner):
    scanner.verdicts = {"http://b.example": "URL is clean"}
    detector, client = make_detector([
        check_url_calls("http://a.example", "http://b.example", "http://a.example"),
        check_url_calls("http://b.example", "http://c.example", prefix="again"),
        completed(verdict_payload()),
    ])

    report = detector.detect(EMAIL)

    assert list(report.urlChecks) == ["http://a.example", "http://b.example", "http://c.example"]
    assert report.urlChecks["http://b.example"] == "URL is clean"
    assert scanner.calls == ["http://a.example", "http://b.example", "http://c.example"]
    # Every tool call still gets exactly one answer, in emission order
    tool_ids = [m["tool_call_id"] for m in client.calls[-1] if m["role"] == "tool"]
    assert tool_ids == ["call_0", "call_1", "call_2", "again_0", "again_1"]


def test_urls_are_not_normalized(make_detector, scanner):
    detector, _ = make_detector([
        check_url_calls("http://Evil.example/login", "http://evil.example/login"),
        completed(verdict_payload()),
    ])

    report = detector.detect(EMAIL)

    assert len(report.urlChecks) == 2
    assert len(scanner.calls) == 2


def test_history_grows_as_strict_prefix(make_detector):
    detector, client = make_detector([
        check_url_calls("http://a.example"),
        check_url_calls("http://b.example", prefix="next"),
        completed(verdict_payload()),
    ])

    detector.detect(EMAIL)

    for earlier, later in zip(client.calls, client.calls[1:]):
        assert len(later) > len(earlier)
        assert later[:len(earlier)] == earlier


def test_request_options(make_detector):
    detector, client = make_detector([completed(verdict_payload())])

    detector.detect(EMAIL)

    options = client.options[0]
    assert options.parallel_tool_calls is False
    assert options.tool_choice == "auto"
    assert options.response_format["json_schema"]["strict"] is True
    assert [t["function"]["name"] for t in options.tools] == ["checkUrl"]


def test_unknown_tool_fails_run(make_detector, scanner):
    call = ToolCall(id="x", name="deleteMailbox", arguments="{}")
    detector, _ = make_detector([
        ChatCompletion(FinishSignal.TOOL_CALLS_REQUESTED, "tool_calls", None, (call,)),
    ])

    run = detector.start_run(EMAIL)
    with pytest.raises(UnknownToolError):
        detector.execute(run)

    assert run.state is RunState.FAILED
    assert run.verdict is None
    assert scanner.calls == []


def test_invalid_tool_arguments_fail_run(make_detector):
    call = ToolCall(id="x", name="checkUrl", arguments=json.dumps({"link": "http://a.example"}))
    detector, _ = make_detector([
        ChatCompletion(FinishSignal.TOOL_CALLS_REQUESTED, "tool_calls", None, (call,)),
    ])

    with pytest.raises(InvalidToolArgumentsError):
        detector.detect(EMAIL)


@pytest.mark.parametrize("text", [
    "not json at all",
    json.dumps({"suspicious": True}),
    json.dumps({**verdict_payload(), "confidence": 0.9}),
    json.dumps({**verdict_payload(), "detectedItems": [{"title": "only a title"}]}),
    json.dumps({**verdict_payload(), "suspicious": "yes"}),
    json.dumps({**verdict_payload(), "suspicious": "true"}),
    json.dumps({**verdict_payload(), "suspicious": 1}),
    json.dumps({**verdict_payload(), "shortDescription": 42}),
    "",
])
def test_malformed_verdict_fails_run(make_detector, text):
    detector, _ = make_detector([completed(text)])

    run = detector.start_run(EMAIL)
    with pytest.raises(MalformedResultError):
        detector.execute(run)

    assert run.state is RunState.FAILED
    assert run.verdict is None


@pytest.mark.parametrize("reason", ["length", "content_filter", None])
def test_unexpected_finish_reason(make_detector, reason):
    detector, _ = make_detector([
        ChatCompletion(FinishSignal.from_reason(reason), reason, "{}"),
    ])

    with pytest.raises(UnexpectedFinishReasonError) as exc_info:
        detector.detect(EMAIL)

    assert exc_info.value.finish_reason == reason


def test_successful_run_reaches_done(make_detector):
    detector, _ = make_detector([completed(verdict_payload())])

    run = detector.start_run(EMAIL)
    assert run.state is RunState.SEEDED

    report = detector.execute(run)

    assert run.state is RunState.DONE
    assert run.verdict is not None
    assert report.shortDescription == run.verdict.shortDescription


def test_max_rounds_guard(make_detector, scanner):
    detector, client = make_detector(
        [check_url_calls(f"http://{i}.example", prefix=f"r{i}") for i in range(5)],
        max_rounds=3,
    )

    run = detector.start_run(EMAIL)
    with pytest.raises(ExceededMaxRoundsError):
        detector.execute(run)

    assert len(client.calls) == 3
    assert run.rounds == 3
    assert run.state is RunState.FAILED


def test_deadline_stops_before_next_tool_call(make_detector, scanner, monkeypatch):
    detector, client = make_detector(
        [check_url_calls("http://a.example", "http://b.example")],
        run_deadline=10,
    )
    run = detector.start_run(EMAIL)

    elapsed = iter([0.0, 0.0, 11.0])
    monkeypatch.setattr(run, "elapsed", lambda: next(elapsed))

    with pytest.raises(RunDeadlineExceededError):
        detector.execute(run)

    assert scanner.calls == ["http://a.example"]
    assert run.state is RunState.FAILED


def test_provider_error_propagates_without_report(make_detector):
    detector, _ = make_detector([ModelProviderError("rate limited")])

    run = detector.start_run(EMAIL)
    with pytest.raises(ModelProviderError):
        detector.execute(run)

    assert run.state is RunState.FAILED


def test_runs_do_not_share_url_checks(make_detector, scanner):
    url = "http://evil.example/login"
    detector, _ = make_detector([
        check_url_calls(url),
        completed(verdict_payload()),
        check_url_calls(url),
        completed(verdict_payload()),
    ])

    first = detector.detect(EMAIL)
    second = detector.detect(EMAIL)

    assert first.urlChecks == second.urlChecks == {url: "URL is malicious"}
    assert scanner.calls == [url, url]


def test_tool_calls_finish_without_calls_fails_run(make_detector, scanner):
    detector, client = make_detector([
        ChatCompletion(FinishSignal.TOOL_CALLS_REQUESTED, "tool_calls", None, ()),
    ])

    run = detector.start_run(EMAIL)
    with pytest.raises(UnexpectedFinishReasonError, match="sent none"):
        detector.execute(run)

    assert len(client.calls) == 1
    assert [m["role"] for m in run.messages] == ["system", "user"]
    assert run.state is RunState.FAILED


def test_report_cannot_be_modified(make_detector):
    items = [{"title": "Link", "description": "http://evil.example/login", "reasoning": "malicious"}]
    detector, _ = make_detector([
        check_url_calls("http://evil.example/login"),
        completed(verdict_payload(items=items)),
    ])

    report = detector.detect(EMAIL)

    with pytest.raises(TypeError):
        report.urlChecks["http://injected.example"] = "clean"
    with pytest.raises(AttributeError):
        report.detectedItems.append(report.detectedItems[0])
    with pytest.raises(ValidationError):
        report.detectedItems[0].title = "changed"
    with pytest.raises(ValidationError):
        report.suspicious = False

    assert report.urlChecks == {"http://evil.example/login": "URL is malicious"}
    assert len(report.detectedItems) == 1
    assert report.model_dump()["urlChecks"] == {"http://evil.example/login": "URL is malicious"}
