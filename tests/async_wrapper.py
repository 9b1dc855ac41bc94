import asyncio
import functools
import sys
import warnings


def _await(coro):
    """Run ``coro`` in a fresh event loop, failing if it emits any warnings (e.g., "coroutine was never awaited")."""
    loop = asyncio.new_event_loop()

    with warnings.catch_warnings(record=True) as warns:
        warnings.simplefilter('always')
        try:
            ret = loop.run_until_complete(coro)
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

        for warn in warns:
            print(warn.message, file=sys.stderr)

        if any(issubclass(warn.category, RuntimeWarning) for warn in warns):
            raise RuntimeError('The test emitted a RuntimeWarning')

        return ret


def awaiter(func):
    """Turn an ``async def`` test method into a blocking one."""
    @functools.wraps(func)
    def sync_func(*args, **kwargs):
        return _await(func(*args, **kwargs))

    return sync_func
