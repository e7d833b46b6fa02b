import logging

import pytest

from vulnscan.retry import MAX_RETRIES, retry
from vulnscan.rpcmodels import TwirpError, TwirpErrorCode


class _Flaky:
    def __init__(self, failures, code=TwirpErrorCode.UNAVAILABLE):
        self.failures = failures
        self.code = code
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise TwirpError(self.code, "server down")
        return "done"


def test_success_on_first_call_does_not_sleep():
    delays = []
    f = _Flaky(0)
    assert retry(f, sleep=delays.append) == "done"
    assert f.calls == 1
    assert delays == []


def test_unavailable_errors_are_retried():
    delays = []
    f = _Flaky(2)
    assert retry(f, sleep=delays.append) == "done"
    assert f.calls == 3
    assert len(delays) == 2
    assert all(0 < d <= 60 for d in delays)


def test_other_twirp_codes_are_permanent():
    delays = []
    f = _Flaky(5, code=TwirpErrorCode.INTERNAL)
    with pytest.raises(TwirpError) as info:
        retry(f, sleep=delays.append)
    assert info.value.code is TwirpErrorCode.INTERNAL
    assert f.calls == 1
    assert delays == []


def test_non_twirp_errors_are_permanent():
    calls = []

    def fail():
        calls.append(1)
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        retry(fail, sleep=lambda _: None)
    assert len(calls) == 1


def test_gives_up_after_max_retries():
    delays = []
    f = _Flaky(10_000)
    with pytest.raises(TwirpError) as info:
        retry(f, sleep=delays.append)
    assert info.value.code is TwirpErrorCode.UNAVAILABLE
    assert f.calls == MAX_RETRIES + 1
    assert len(delays) == MAX_RETRIES


def test_retry_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="vulnscan.retry")
    assert retry(_Flaky(1), sleep=lambda _: None) == "done"
    assert "Retrying HTTP request..." in caplog.text
    assert "server down" in caplog.text