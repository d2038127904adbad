"""Small helpers shared across ``rxstream`` modules."""

import traceback


def get_short_error_info(e: BaseException) -> str:
    """``"ValueError: message"`` for ``e``; used in log lines and close details."""
    return f"{type(e).__name__}: {e}"


def get_full_error_info(e: BaseException) -> str:
    """Formatted traceback of ``e``, for ERROR logs."""
    return "".join(traceback.format_exception(type(e), e, e.__traceback__))


def mask_secret(value: str, keep: int = 2) -> str:
    """Return ``value`` with everything but the first ``keep`` characters hidden."""
    if len(value) <= keep:
        return "*" * len(value)
    return value[:keep] + "*" * (len(value) - keep)
