import functools
import inspect
import logging
import time

logger = logging.getLogger(__name__)


class Profiler:
    """
    Decorator for timing hot-path methods. Timings are logged at DEBUG so they
    only show up when LOG_LEVEL=DEBUG.
    """

    @staticmethod
    def profile(func):
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    if logger.isEnabledFor(logging.DEBUG):
                        elapsed = time.perf_counter() - start
                        logger.debug(f"[Profiler] {func.__qualname__} took {elapsed:.6f}s")

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                if logger.isEnabledFor(logging.DEBUG):
                    elapsed = time.perf_counter() - start
                    logger.debug(f"[Profiler] {func.__qualname__} took {elapsed:.6f}s")

        return sync_wrapper
