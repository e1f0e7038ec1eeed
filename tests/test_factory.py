import pytest

from phish_detector import config
from phish_detector.core import factory
from phish_detector.core.url_scanner import FetchUrlScanner, SafeBrowsingUrlScanner, StaticUrlScanner


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(config, "LLM_API_URL", "https://llm.example/v1/chat/completions")
    monkeypatch.setattr(config, "LLM_API_KEY", "secret")
    monkeypatch.setattr(config, "LLM_MODEL", "gpt-test")
    monkeypatch.setattr(config, "URL_SCANNER", "stub")
    monkeypatch.setattr(config, "MAX_ROUNDS", 4)
    monkeypatch.setattr(config, "RUN_DEADLINE_SECONDS", 45)
    return monkeypatch


def test_require_rejects_blank_setting(monkeypatch):
    monkeypatch.setattr(config, "LLM_API_KEY", "")

    with pytest.raises(RuntimeError, match="LLM_API_KEY"):
        config.require("LLM_API_KEY")


def test_build_detector_from_config(configured):
    detector = factory.build_detector()

    assert detector.max_rounds == 4
    assert detector.run_deadline == 45
    assert detector.chat_client.model == "gpt-test"
    assert detector.chat_client.api_key == "secret"
    assert isinstance(detector.url_scanner, StaticUrlScanner)


def test_build_detector_requires_llm_key(configured):
    configured.setattr(config, "LLM_API_KEY", "")

    with pytest.raises(RuntimeError):
        factory.build_detector()


def test_stub_verdict_from_config(configured):
    configured.setattr(config, "URL_SCANNER_STUB_VERDICT", "URL looks fine")

    scanner = factory.build_configured_scanner()

    assert scanner.scan("http://a.example") == "URL looks fine"


def test_fetch_scanner_from_config(configured):
    configured.setattr(config, "URL_SCANNER", "fetch")
    configured.setattr(config, "URL_FETCH_MAX_BYTES", 1024)

    scanner = factory.build_configured_scanner()

    assert isinstance(scanner, FetchUrlScanner)
    assert scanner.max_bytes == 1024


def test_safe_browsing_requires_key(configured):
    configured.setattr(config, "URL_SCANNER", "safe_browsing")
    configured.setattr(config, "SAFE_BROWSING_API_KEY", "")

    with pytest.raises(RuntimeError, match="SAFE_BROWSING_API_KEY"):
        factory.build_configured_scanner()

    configured.setattr(config, "SAFE_BROWSING_API_KEY", "k")
    assert isinstance(factory.build_configured_scanner(), SafeBrowsingUrlScanner)


def test_unknown_scanner_backend(configured):
    configured.setattr(config, "URL_SCANNER", "crystal_ball")

    with pytest.raises(RuntimeError):
        factory.build_configured_scanner()
