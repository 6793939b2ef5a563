import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator


_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

perf_logger = logging.getLogger("codesensei.perf")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


@contextmanager
def timed(operation: str, **metadata: Any) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except Exception:
        elapsed_ms = round((time.perf_counter() - start) * 1000)
        perf_logger.exception("%s failed after %sms %s", operation, elapsed_ms, metadata)
        raise
    elapsed_ms = round((time.perf_counter() - start) * 1000)
    perf_logger.info("%s took %sms %s", operation, elapsed_ms, metadata)
