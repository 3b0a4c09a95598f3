"""
Logging utilities for the Rubric Service.

Provides:
- setup_cloud_logging(): structured JSON logging on Cloud Functions,
  plain console output locally
- @log_function decorator: logs entry/exit/errors with timing, masking
  credentials and truncating prompt-sized strings
"""

import functools
import inspect
import logging
import os
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)


def setup_cloud_logging():
    """Configure logging for the current environment.

    On GCP (Cloud Functions sets K_SERVICE automatically) this installs
    google-cloud-logging's structured handler so severity and source
    location are parsed natively. Locally it falls back to basicConfig.
    LOG_LEVEL overrides the default INFO level in both cases.
    """
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    if os.environ.get("K_SERVICE"):
        import google.cloud.logging
        client = google.cloud.logging.Client()
        client.setup_logging(log_level=level)
    else:
        logging.basicConfig(level=level)


# Parameter names whose values should be masked in logs
SENSITIVE_PARAMS = frozenset({
    'api_key', 'password', 'secret', 'token', 'id_token',
    'credentials', 'authorization',
})

# Free-text parameters that can be long (prompts, model output)
LONG_TEXT_LIMIT = 80


def _is_rubric_like(value: Any) -> bool:
    """Rubrics are large; title and item count are enough in logs."""
    return isinstance(getattr(value, "title", None), str) and isinstance(
        getattr(value, "items", None), tuple
    )


def _summarize(value: Any, max_len: int = 120) -> str:
    """Create a concise summary of a return value for logging."""
    if value is None:
        return "None"

    type_name = type(value).__name__

    if isinstance(value, str):
        if len(value) > max_len:
            return f"str({len(value)} chars): {value[:max_len]}..."
        return f"str: {value}"

    if isinstance(value, (list, tuple)):
        return f"{type_name}({len(value)} items)"

    if isinstance(value, dict):
        return f"dict({len(value)} keys: {list(value.keys())[:5]})"

    if isinstance(value, (bool, int, float)):
        return str(value)

    if _is_rubric_like(value):
        return f"{type_name}(title={value.title!r}, {len(value.items)} items)"

    text = repr(value)
    if len(text) > max_len:
        return f"{type_name}: {text[:max_len]}..."
    return f"{type_name}: {text}"


def _format_params(func: Callable, args: tuple, kwargs: dict) -> str:
    """Format function parameters for logging, masking sensitive values."""
    sig = inspect.signature(func)
    bound = sig.bind(*args, **kwargs)
    bound.apply_defaults()

    parts = []
    for name, value in bound.arguments.items():
        if name in ('self', 'cls'):
            continue
        if name in SENSITIVE_PARAMS:
            parts.append(f"{name}=***")
        elif isinstance(value, str) and len(value) > LONG_TEXT_LIMIT:
            parts.append(f"{name}='{value[:LONG_TEXT_LIMIT]}...'")
        elif _is_rubric_like(value):
            parts.append(f"{name}={_summarize(value)}")
        else:
            text = repr(value)
            if len(text) > 2 * LONG_TEXT_LIMIT:
                text = text[:2 * LONG_TEXT_LIMIT] + "..."
            parts.append(f"{name}={text}")

    return ", ".join(parts)


def log_function(func: Callable | None = None, *, mask_result: bool = False) -> Callable:
    """
    Decorator that logs function entry, exit, duration, and errors.

    Usage:
        @log_function
        def my_function(x, y):
            return x + y

        @log_function(mask_result=True)
        def get_api_key():
            ...
    """
    if func is None:
        return functools.partial(log_function, mask_result=mask_result)

    qual_name = func.__qualname__

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            params_str = _format_params(func, args, kwargs)
        except Exception:
            params_str = "(unable to format params)"

        logger.info(f"▶ {qual_name}({params_str})")
        start = time.time()

        try:
            result = func(*args, **kwargs)
            elapsed = time.time() - start
            result_summary = "***" if mask_result and result is not None else _summarize(result)
            logger.info(f"◀ {qual_name} → {result_summary} [{elapsed:.2f}s]")
            return result
        except Exception as e:
            elapsed = time.time() - start
            logger.info(f"◀ {qual_name} FAILED ({type(e).__name__}) [{elapsed:.2f}s]")
            raise

    return wrapper
