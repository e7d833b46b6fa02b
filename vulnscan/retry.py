"""Retrying RPC calls with exponential backoff."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

from vulnscan.rpcmodels import TwirpError, TwirpErrorCode

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 10
_INITIAL_INTERVAL = 0.5
_RANDOMIZATION_FACTOR = 0.5
_MULTIPLIER = 1.5
_MAX_INTERVAL = 60.0
_MAX_ELAPSED = 15 * 60.0


def retry(f: Callable[[], T], sleep: Callable[[float], None] = time.sleep) -> T:
    """Call ``f`` until it succeeds, retrying only when the server is unavailable.

    Any other error is raised at once; after ``MAX_RETRIES`` retries, or once
    the elapsed time would pass fifteen minutes, the last error is raised.
    """
    interval = _INITIAL_INTERVAL
    start = time.monotonic()
    retries = 0
    while True:
        try:
            return f()
        except TwirpError as err:
            if err.code is not TwirpErrorCode.UNAVAILABLE:
                raise
            if retries >= MAX_RETRIES:
                raise
            delta = _RANDOMIZATION_FACTOR * interval
            delay = random.uniform(interval - delta, interval + delta)
            interval = min(interval * _MULTIPLIER, _MAX_INTERVAL)
            if time.monotonic() - start + delay > _MAX_ELAPSED:
                raise
            retries += 1
            logger.warning("%s", err)
            logger.info("Retrying HTTP request...")
            sleep(delay)