"""
debug_trace.py

Opt-in tracing for pointer gestures, store mutations and persistence.

Environment:
    CYBERWEAVER_TRACE        "1" traces every category; a comma separated
                             list (e.g. "INPUT,CODEC") traces only those.
    CYBERWEAVER_TRACE_MOVES  "1" also traces per-move drag updates (noisy).
    CYBERWEAVER_TRACE_FILE   Optional path that receives a copy of each line.
"""

import os
import sys
import traceback
from datetime import datetime
from functools import wraps
from typing import FrozenSet, Optional, TextIO

_ALL = "*"


def _parse_categories(value: str) -> FrozenSet[str]:
    value = value.strip()
    if not value or value == "0":
        return frozenset()
    if value == "1":
        return frozenset({_ALL})
    return frozenset(part.strip().upper() for part in value.split(",") if part.strip())


ENABLED_CATEGORIES = _parse_categories(os.environ.get("CYBERWEAVER_TRACE", ""))
DEBUG_TRACE = bool(ENABLED_CATEGORIES)
TRACE_MOVES = os.environ.get("CYBERWEAVER_TRACE_MOVES", "") == "1"
LOG_FILE = os.environ.get("CYBERWEAVER_TRACE_FILE", "")

_log_file: Optional[TextIO] = None
_log_file_failed = False


def enabled(category: str) -> bool:
    """Whether lines of ``category`` would be written."""
    if not DEBUG_TRACE:
        return False
    if category == "MOVE" and not TRACE_MOVES:
        return False
    # Errors and crashes always pass once tracing is on
    if category in ("ERROR", "CRASH"):
        return True
    return _ALL in ENABLED_CATEGORIES or category in ENABLED_CATEGORIES


def _sink() -> Optional[TextIO]:
    global _log_file, _log_file_failed
    if not LOG_FILE or _log_file is not None or _log_file_failed:
        return _log_file
    try:
        _log_file = open(LOG_FILE, "a", encoding="utf-8")
    except OSError as e:
        _log_file_failed = True
        print(f"trace file {LOG_FILE} unavailable: {e}", file=sys.stderr)
    return _log_file


def trace(msg: str, category: str = "INFO"):
    """Write one timestamped trace line for ``category``."""
    if not enabled(category):
        return
    stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    line = f"{stamp} {category:<7} {msg}"
    print(line, file=sys.stderr, flush=True)
    f = _sink()
    if f is not None:
        try:
            f.write(line + "\n")
            f.flush()
        except OSError:
            close_log()


def trace_exception(msg: str = "Exception"):
    """Trace the exception currently being handled, with its traceback."""
    if DEBUG_TRACE:
        trace(f"{msg}: {traceback.format_exc()}", "ERROR")


def trace_call(category: str = "CALL"):
    """Decorator tracing entry, exit and exceptions of a function."""
    def decorator(func):
        if not DEBUG_TRACE:
            return func

        @wraps(func)
        def wrapper(*args, **kwargs):
            name = func.__qualname__
            trace(f"-> {name}", category)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                trace(f"!! {name}: {type(e).__name__}: {e}", "ERROR")
                raise
            trace(f"<- {name} = {result!r:.60}", category)
            return result
        return wrapper
    return decorator


def close_log():
    """Close the trace file, if one is open."""
    global _log_file
    if _log_file is not None:
        try:
            _log_file.close()
        except OSError:
            pass
        _log_file = None
