import asyncio
import functools

_TEST_TIMEOUT = 30


def async_test(coro):
    """Run ``coro`` to completion, failing it after ``_TEST_TIMEOUT`` seconds."""

    @functools.wraps(coro)
    def wrapper(*args, **kwargs):
        return asyncio.run(
            asyncio.wait_for(coro(*args, **kwargs), timeout=_TEST_TIMEOUT)
        )

    return wrapper
