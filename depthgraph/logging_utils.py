"""DEBUG call tracing for the solver modules.

A module opts in with ``apply_debug_logging(globals(), logger=logger)`` as its
last statement. Once DEBUG is enabled for that logger every call of the
module's own functions logs its arguments and result. Arrays, sparse matrices
and long containers are summarised instead of printed in full.
"""

from __future__ import annotations

import inspect
import logging
import reprlib
from functools import wraps
from typing import Any, Callable, Iterable, MutableMapping, Optional, Sequence, TypeVar, cast

import numpy as np
from scipy import sparse

F = TypeVar("F", bound=Callable[..., Any])

_WRAPPED_FLAG = "_debug_logging_wrapped"
_MAX_ITEMS = 5
_MAX_LENGTH = 400

_repr = reprlib.Repr()
_repr.maxother = 160
_repr.maxstring = 80


def _summarize_array(value: np.ndarray) -> str:
    head = f"ndarray(shape={value.shape}, dtype={value.dtype})"
    if value.size == 0:
        return head
    if value.size <= _MAX_ITEMS:
        return f"{head} {np.array2string(value.ravel(), precision=4, separator=', ')}"
    if not np.issubdtype(value.dtype, np.number):
        return head
    finite = value[np.isfinite(value)]
    parts = [head]
    if finite.size:
        parts.append(f"min={finite.min():.6g} max={finite.max():.6g}")
    if finite.size < value.size:
        parts.append(f"non_finite={value.size - finite.size}")
    return " ".join(parts)


def _summarize_sparse(value: Any) -> str:
    rows, cols = value.shape
    return f"{type(value).__name__}(shape=({rows}, {cols}), nnz={value.nnz})"


def _join_limited(rendered: Iterable[str], count: int) -> str:
    parts = []
    for idx, text in enumerate(rendered):
        if idx == _MAX_ITEMS:
            parts.append(f"... {count - _MAX_ITEMS} more")
            break
        parts.append(text)
    return ", ".join(parts)


def _safe_repr(value: Any) -> str:
    if isinstance(value, np.ndarray):
        return _summarize_array(value)
    if sparse.issparse(value):
        return _summarize_sparse(value)
    if isinstance(value, dict):
        pairs = (f"{_safe_repr(key)}: {_safe_repr(val)}" for key, val in value.items())
        return "{" + _join_limited(pairs, len(value)) + "}"
    if isinstance(value, (list, tuple, set, frozenset)):
        if isinstance(value, tuple):
            open_br, close_br = "(", ")"
        elif isinstance(value, (set, frozenset)):
            open_br, close_br = "{", "}"
        else:
            open_br, close_br = "[", "]"
        return open_br + _join_limited((_safe_repr(item) for item in value), len(value)) + close_br
    rendered = _repr.repr(value)
    if len(rendered) > _MAX_LENGTH:
        rendered = rendered[:_MAX_LENGTH] + "... (truncated)"
    return rendered


def _format_call(args: Sequence[Any], kwargs: MutableMapping[str, Any]) -> str:
    rendered = [_safe_repr(arg) for arg in args]
    rendered.extend(f"{key}={_safe_repr(value)}" for key, value in kwargs.items())
    return ", ".join(rendered)


def debug_log_call(logger: logging.Logger, *, name: Optional[str] = None) -> Callable[[F], F]:
    """Decorator logging entry, exit and exceptions of a call at DEBUG level."""

    def decorator(func: F) -> F:
        if getattr(func, _WRAPPED_FLAG, False):
            return func
        label = name or func.__qualname__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            if not logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)
            logger.debug("Entering %s(%s)", label, _format_call(args, kwargs))
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.debug("Exception in %s", label, exc_info=True)
                raise
            logger.debug("Exiting %s -> %s", label, _safe_repr(result))
            return result

        setattr(wrapper, _WRAPPED_FLAG, True)
        return cast(F, wrapper)

    return decorator


def apply_debug_logging(
    namespace: MutableMapping[str, Any], *, logger: Optional[logging.Logger] = None
) -> None:
    """Wrap the functions defined in ``namespace`` with :func:`debug_log_call`.

    Functions imported into the module are left alone.
    """

    module_name = namespace.get("__name__")
    logger = logger or logging.getLogger(module_name)
    for name, value in list(namespace.items()):
        if inspect.isfunction(value) and value.__module__ == module_name:
            namespace[name] = debug_log_call(logger, name=name)(value)


__all__ = ["debug_log_call", "apply_debug_logging"]
