"""Decorators for tracing service operations."""

import functools
from collections.abc import Callable
from datetime import datetime

import logfire


def traced(operation: str):
    """Wrap a service method in a ``service.<operation>`` span."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with logfire.span(
                f"service.{operation}",
                operation=operation,
                domain=operation.split(".", 1)[0],
            ) as span:
                start_time = datetime.now()

                # Scalar arguments only (ids, quantities, flags)
                _add_attributes(span, "input", kwargs)

                try:
                    result = func(*args, **kwargs)

                    span.set_attribute("operation.success", True)
                    span.set_attribute(
                        "operation.duration_ms",
                        (datetime.now() - start_time).total_seconds() * 1000,
                    )
                    if isinstance(result, list):
                        span.set_attribute("result.item_count", len(result))

                    return result

                except Exception as e:
                    span.set_attribute("operation.success", False)
                    span.set_attribute("operation.error", str(e))
                    span.set_attribute("operation.error_type", type(e).__name__)
                    raise

        return wrapper

    return decorator


SENSITIVE_KEYS = ("password", "token", "secret")


def _add_attributes(span, prefix: str, data: dict):
    for key, value in data.items():
        if any(word in key for word in SENSITIVE_KEYS):
            continue
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
