import httpx
import pytest

from hauntscore.config.settings import RetrySettings
from hauntscore.core.http import get_json_with_retry


def _status_error(url: str, status: int, headers: dict[str, str] | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    response = httpx.Response(status, request=request, headers=headers or {})
    return httpx.HTTPStatusError(str(status), request=request, response=response)


def test_retries_on_429_and_honours_retry_after(monkeypatch):
    attempts = []
    sleeps = []

    def fake_get_json(url, *, params=None, headers=None, timeout_seconds=5):  # noqa: ARG001
        attempts.append(url)
        if len(attempts) == 1:
            raise _status_error(url, 429, {"Retry-After": "3"})
        return {"ok": True}

    monkeypatch.setattr("hauntscore.core.http.get_json", fake_get_json)
    monkeypatch.setattr("hauntscore.core.http.time.sleep", lambda s: sleeps.append(s))

    retry = RetrySettings(max_attempts=2, base_delay_seconds=0.5, max_delay_seconds=4.0)
    assert get_json_with_retry("https://example.test/x", retry=retry) == {"ok": True}
    assert len(attempts) == 2
    assert sleeps == [3.0]


def test_gives_up_after_max_attempts_on_5xx(monkeypatch):
    attempts = []

    def fake_get_json(url, **_kwargs):
        attempts.append(url)
        raise _status_error(url, 503)

    monkeypatch.setattr("hauntscore.core.http.get_json", fake_get_json)
    monkeypatch.setattr("hauntscore.core.http.time.sleep", lambda *_args: None)

    with pytest.raises(httpx.HTTPStatusError):
        get_json_with_retry("https://example.test/x", retry=RetrySettings(max_attempts=2))
    assert len(attempts) == 3


def test_does_not_retry_client_errors(monkeypatch):
    attempts = []

    def fake_get_json(url, **_kwargs):
        attempts.append(url)
        raise _status_error(url, 404)

    monkeypatch.setattr("hauntscore.core.http.get_json", fake_get_json)
    monkeypatch.setattr("hauntscore.core.http.time.sleep", lambda *_args: None)

    with pytest.raises(httpx.HTTPStatusError):
        get_json_with_retry("https://example.test/x", retry=RetrySettings(max_attempts=3))
    assert len(attempts) == 1


def test_backoff_is_exponential_and_capped(monkeypatch):
    sleeps = []

    def fake_get_json(url, **_kwargs):
        raise httpx.ConnectError("refused", request=httpx.Request("GET", url))

    monkeypatch.setattr("hauntscore.core.http.get_json", fake_get_json)
    monkeypatch.setattr("hauntscore.core.http.time.sleep", lambda s: sleeps.append(s))

    retry = RetrySettings(max_attempts=4, base_delay_seconds=1.0, max_delay_seconds=5.0)
    with pytest.raises(httpx.ConnectError):
        get_json_with_retry("https://example.test/x", retry=retry)
    assert sleeps == [1.0, 2.0, 4.0, 5.0]
