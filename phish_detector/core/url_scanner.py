"""
URL Scanner Backends
=====================
Implementations of the capability behind the checkUrl tool. Every scanner
exposes scan(url) -> verdict text, holds only immutable configuration and
may be shared across concurrent detection runs.

Backends (selected with URL_SCANNER):
- stub:          Always returns the same configured verdict. Useful for
                 local runs and demos.
- safe_browsing: Looks the URL up in the Google Safe Browsing v4
                 threatMatches:find API.
- fetch:         Issues one guarded GET to the URL (http/https only, public
                 addresses only, no redirect following, size-capped body)
                 and summarises what it saw: status, off-site redirects and
                 credential-harvesting forms.

Scanners never cache; deduplication within a run is done by the checkUrl
tool handler.
"""

import ipaddress
import logging
import re
import socket
from urllib.parse import urljoin, urlparse

import requests

from phish_detector.core.errors import UrlScannerError

logger = logging.getLogger(__name__)

SAFE_BROWSING_URL = "https://safebrowsing.googleapis.com/v4/threatMatches:find"
SAFE_BROWSING_THREAT_TYPES = [
    "MALWARE", "SOCIAL_ENGINEERING", "UNWANTED_SOFTWARE", "POTENTIALLY_HARMFUL_APPLICATION",
]

PASSWORD_INPUT_REGEX = re.compile(r"<input[^>]+type\s*=\s*[\"']?password", re.IGNORECASE)
FORM_REGEX = re.compile(r"<form\b", re.IGNORECASE)


class UrlScanner:
    """Base class for URL scanners."""

    name = "base"

    def scan(self, url: str) -> str:
        raise NotImplementedError


# ---------- STUB ----------

class StaticUrlScanner(UrlScanner):
    """Returns a fixed verdict for every URL."""

    name = "stub"

    def __init__(self, verdict: str = "URL is malicious"):
        self.verdict = verdict

    def scan(self, url: str) -> str:
        return self.verdict


# ---------- GOOGLE SAFE BROWSING ----------

class SafeBrowsingUrlScanner(UrlScanner):
    """
    Reputation lookup against Google Safe Browsing.

    Args:
        api_key: Safe Browsing API key
        client_id: Client identifier reported to the API
        timeout: Request timeout in seconds
    """

    name = "safe_browsing"

    def __init__(self, api_key: str, client_id: str = "phish-detector", timeout: int = 5):
        self.api_key = api_key
        self.client_id = client_id
        self.timeout = timeout

    def _payload(self, url: str) -> dict:
        return {
            "client": {"clientId": self.client_id, "clientVersion": "1.0.0"},
            "threatInfo": {
                "threatTypes": SAFE_BROWSING_THREAT_TYPES,
                "platformTypes": ["ANY_PLATFORM"],
                "threatEntryTypes": ["URL"],
                "threatEntries": [{"url": url}],
            },
        }

    def scan(self, url: str) -> str:
        try:
            response = requests.post(
                SAFE_BROWSING_URL,
                params={"key": self.api_key},
                json=self._payload(url),
                timeout=self.timeout,
            )
            response.raise_for_status()
            matches = response.json().get("matches") or []
        except requests.exceptions.RequestException as e:
            logger.error(f"Safe Browsing lookup failed for {url}: {e}")
            raise UrlScannerError(f"Safe Browsing lookup failed: {e}") from e
        except ValueError as e:
            raise UrlScannerError("Safe Browsing returned a non-JSON body") from e

        if not matches:
            return "URL is not listed as malicious by Google Safe Browsing"

        threats = sorted({m.get("threatType", "UNKNOWN") for m in matches})
        return f"URL is malicious: listed by Google Safe Browsing as {', '.join(threats)}"


# ---------- GUARDED FETCH ----------

def _is_private_ip(addr: str) -> bool:
    try:
        ip = ipaddress.ip_address(addr)
    except ValueError:
        return False
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_link_local
        or ip.is_unspecified
    )


class FetchUrlScanner(UrlScanner):
    """
    Fetches the URL once and reports observable red flags.

    Args:
        timeout: Request timeout in seconds
        max_bytes: Maximum number of body bytes read
        allow_private_network: Permit hosts resolving to private addresses
    """

    name = "fetch"
    user_agent = "PhishDetectorFetcher/1.0"

    def __init__(self, timeout: int = 5, max_bytes: int = 200_000,
                 allow_private_network: bool = False):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.allow_private_network = allow_private_network

    def _blocked_reason(self, url: str) -> str | None:
        parsed = urlparse(url.strip())
        if parsed.scheme not in {"http", "https"}:
            return f"unsupported scheme '{parsed.scheme or 'none'}'"
        host = parsed.hostname or ""
        if not host:
            return "missing host"
        try:
            infos = socket.getaddrinfo(host, None)
        except socket.gaierror:
            return "host does not resolve"
        if not self.allow_private_network:
            for entry in infos:
                if _is_private_ip(entry[4][0]):
                    return "host resolves to a private network address"
        return None

    def _read_body(self, response: requests.Response) -> str:
        chunks = []
        total = 0
        for chunk in response.iter_content(chunk_size=16384):
            chunks.append(chunk)
            total += len(chunk)
            if total >= self.max_bytes:
                break
        return b"".join(chunks)[: self.max_bytes].decode(response.encoding or "utf-8", errors="replace")

    def scan(self, url: str) -> str:
        reason = self._blocked_reason(url)
        if reason:
            logger.info(f"Fetch scanner refused {url}: {reason}")
            return f"URL could not be checked safely ({reason}); treat as suspicious"

        try:
            with requests.get(
                url,
                timeout=self.timeout,
                allow_redirects=False,
                stream=True,
                headers={"User-Agent": self.user_agent},
            ) as response:
                status = response.status_code
                location = response.headers.get("location", "")
                body = "" if location else self._read_body(response)
        except requests.exceptions.Timeout as e:
            raise UrlScannerError(f"Fetching {url} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise UrlScannerError(f"Fetching {url} failed: {e}") from e

        findings = []
        if location:
            target = urljoin(url, location)
            source_host = (urlparse(url).hostname or "").lower()
            target_host = (urlparse(target).hostname or "").lower()
            if target_host and target_host != source_host:
                findings.append(f"redirects off-site to {target_host}")
            else:
                findings.append(f"redirects to {target}")
        if PASSWORD_INPUT_REGEX.search(body):
            findings.append("page contains a password field")
        elif FORM_REGEX.search(body):
            findings.append("page contains a form")
        if status >= 400:
            findings.append(f"server returned HTTP {status}")

        if not findings:
            return f"URL responded with HTTP {status}; no obvious phishing indicators"
        return f"URL responded with HTTP {status}; " + "; ".join(findings)


def build_url_scanner(kind: str, **settings) -> UrlScanner:
    """
    Construct a scanner backend by name.

    Args:
        kind: "stub", "safe_browsing" or "fetch"
        **settings: Backend-specific keyword arguments

    Returns:
        Configured UrlScanner

    Raises:
        ValueError: If kind is not a known backend
    """
    if kind == "stub":
        return StaticUrlScanner(**settings)
    if kind == "safe_browsing":
        return SafeBrowsingUrlScanner(**settings)
    if kind == "fetch":
        return FetchUrlScanner(**settings)
    raise ValueError(f"Unknown URL scanner backend: {kind}")
