import logging

logger = logging.getLogger(__name__)


def fire_and_forget(label, fn, *args, **kwargs):
    """Run a best-effort side effect (notification, audit entry).

    Failures are logged and discarded; the caller only learns whether the call
    went through, never the exception.
    """
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.exception('Best-effort call failed: %s', label)
        return False
    return True
