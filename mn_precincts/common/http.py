"""HTTP transport with retries, timeouts, proxying and fetch diagnostics."""

from __future__ import annotations

import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any
from urllib.parse import quote

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from mn_precincts.common.constants import USER_AGENT
from mn_precincts.common.errors import SourceFetchError
from mn_precincts.common.models import FetchDiagnostics, FetchResult
from mn_precincts.common.time_utils import utc_timestamp_iso

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
HTML_PREFIXES = ("<!doctype", "<html")


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 20.0
    read: float = 120.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 1.0
    max_wait: float = 30.0


class RetryableHttpError(SourceFetchError):
    pass


def looks_like_html(text: str) -> bool:
    return text.lstrip()[:16].lower().startswith(HTML_PREFIXES)


class HttpClient:
    """Fetches JSON documents, optionally through a CORS/anti-bot proxy.

    ``proxy_base`` is prefixed to the percent-encoded target URL, e.g.
    ``https://proxy.example/?url=``.
    """

    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        proxy_base: str | None = None,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.proxy_base = proxy_base
        self.session = requests.Session()

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def proxied_url(self, url: str) -> str:
        if not self.proxy_base:
            return url
        return f"{self.proxy_base}{quote(url, safe='')}"

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": USER_AGENT, "Accept": "application/json"}

    def _get(self, requested_url: str) -> requests.Response:
        response = self.session.request(
            method="GET",
            url=requested_url,
            headers=self._headers(),
            timeout=(self.timeout.connect, self.timeout.read),
        )
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status: {status}", status=status)
        return response

    def _get_with_retry(self, requested_url: str) -> requests.Response:
        @retry(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            reraise=True,
        )
        def _wrapped() -> requests.Response:
            return self._get(requested_url)

        return _wrapped()

    def _parse_payload(self, response: requests.Response, url: str) -> Any:
        status = response.status_code
        if not 200 <= status < 300:
            raise SourceFetchError(f"HTTP status {status} for {url}", status=status)

        if looks_like_html(response.text):
            raise SourceFetchError(
                f"Remote returned HTML (likely WAF/captcha) instead of GeoJSON for {url}",
                status=status,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise SourceFetchError(f"Invalid JSON payload from {url}", status=status) from exc

    def fetch_json(self, url: str) -> FetchResult:
        requested_url = self.proxied_url(url)
        started_at = utc_timestamp_iso()
        started = time.monotonic()
        response: requests.Response | None = None

        def _diagnostics(status: int | None, error: str | None = None) -> FetchDiagnostics:
            from_cache = False
            if response is not None:
                from_cache = str(response.headers.get("cf-cache-status", "")).upper() == "HIT"
            return FetchDiagnostics(
                url=url,
                requested_url=requested_url,
                status=status,
                started_at=started_at,
                duration_ms=int((time.monotonic() - started) * 1000),
                from_cache=from_cache,
                error=error,
            )

        try:
            response = self._get_with_retry(requested_url)
            payload = self._parse_payload(response, url)
        except SourceFetchError as exc:
            exc.diagnostics = _diagnostics(exc.status, str(exc))
            raise
        except requests.RequestException as exc:
            message = f"Transport error fetching {url}: {exc}"
            raise SourceFetchError(message, diagnostics=_diagnostics(None, message)) from exc

        return FetchResult(payload=payload, diagnostics=_diagnostics(response.status_code))
