"""Serialize exceptions into the nested ``Exception`` column document."""

from __future__ import annotations

import traceback
from importlib import metadata
from typing import Any, Dict, List, Optional


def flatten_exception_group(group: BaseExceptionGroup) -> List[BaseException]:
    """Return the leaf exceptions of ``group``, descending into nested groups."""
    leaves: List[BaseException] = []
    for inner in group.exceptions:
        if isinstance(inner, BaseExceptionGroup):
            leaves.extend(flatten_exception_group(inner))
        else:
            leaves.append(inner)
    return leaves


def base_exception(exc: BaseException) -> BaseException:
    """Follow the cause chain to the innermost exception."""
    seen = {id(exc)}
    current = exc
    while True:
        nxt = current.__cause__
        if nxt is None and not current.__suppress_context__:
            nxt = current.__context__
        if nxt is None or id(nxt) in seen:
            return current
        seen.add(id(nxt))
        current = nxt


def qualified_type_name(exc: BaseException) -> str:
    cls = type(exc)
    return f"{cls.__module__}.{cls.__qualname__}"


def _innermost_frame(exc: BaseException):
    tb = exc.__traceback__
    if tb is None:
        return None
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame


def _module_version(package: str) -> Optional[str]:
    try:
        return metadata.version(package)
    except (metadata.PackageNotFoundError, ValueError):
        return None


def _flattened_group(group: BaseExceptionGroup, leaves: List[BaseException]) -> BaseExceptionGroup:
    flat = group.derive(leaves)
    flat.__traceback__ = group.__traceback__
    flat.__cause__ = group.__cause__
    flat.__context__ = group.__context__
    flat.__suppress_context__ = group.__suppress_context__
    return flat


def serialize_exception(exception: Optional[BaseException]) -> Dict[str, Any]:
    """Convert ``exception`` to a document of diagnostic fields.

    An exception group that flattens to a single leaf is serialized as that
    leaf, so wrapping one error in a group does not change the stored row.
    Nested groups with several leaves are flattened into one group.
    """
    if exception is None:
        return {}

    if isinstance(exception, BaseExceptionGroup):
        leaves = flatten_exception_group(exception)
        if len(leaves) == 1:
            exception = leaves[0]
        elif any(isinstance(inner, BaseExceptionGroup) for inner in exception.exceptions):
            exception = _flattened_group(exception, leaves)

    document: Dict[str, Any] = {
        "Message": str(exception),
        "BaseMessage": str(base_exception(exception)),
        "Text": "".join(traceback.format_exception(type(exception), exception, exception.__traceback__)),
        "Type": qualified_type_name(exception),
    }

    errno = getattr(exception, "errno", None)
    if isinstance(exception, OSError):
        error_code = getattr(exception, "winerror", None) or errno
        if error_code is not None:
            document["ErrorCode"] = error_code

    document["HResult"] = errno if isinstance(errno, int) else 0

    frame = _innermost_frame(exception)
    module_name = frame.f_globals.get("__name__") if frame is not None else None
    document["Source"] = module_name.split(".")[0] if module_name else ""

    if frame is not None:
        document["MethodName"] = frame.f_code.co_name or ""
        if module_name:
            document["ModuleName"] = module_name
            version = _module_version(module_name.split(".")[0])
            if version is not None:
                document["ModuleVersion"] = version

    return document
