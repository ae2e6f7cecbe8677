import time
import logging
from functools import wraps

from django.conf import settings
from django.db import OperationalError

from apps.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def retry_on_storage_error(func=None, *, attempts=None, base_delay=None):
    """
    Retry an idempotent command when the database reports a transient
    failure. Backoff doubles after each attempt. When attempts run out
    the failure surfaces as StorageError.

    Only wrap commands that are safe to repeat (upserts, guarded updates)
    and place the decorator outside transaction.atomic.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            max_attempts = attempts or getattr(settings, 'STORAGE_RETRY_ATTEMPTS', 3)
            delay = base_delay if base_delay is not None else getattr(settings, 'STORAGE_RETRY_BASE_DELAY', 0.05)

            for attempt in range(1, max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except OperationalError as exc:
                    if attempt == max_attempts:
                        logger.error(
                            "%s failed after %s attempts: %s", fn.__qualname__, attempt, exc
                        )
                        raise StorageError() from exc
                    logger.warning(
                        "%s hit a transient storage error (attempt %s/%s): %s",
                        fn.__qualname__, attempt, max_attempts, exc
                    )
                    if delay:
                        time.sleep(delay * (2 ** (attempt - 1)))
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
