import os

from .constants import DATA_DIR_ENV, DEFAULT_DATA_DIR

_BOUNDARY = 1
_DOT = 2
_DOTDOT = 3
_CHAR = 4

_END = "\0"


def _next_state(state, ch):
    if ch in (_END, "/"):
        return _BOUNDARY
    if ch == ".":
        if state == _BOUNDARY:
            return _DOT
        if state == _DOT:
            return _DOTDOT
    return _CHAR


def abspath(raw):
    """Canonicalize a manifest-relative path into an absolute one.

    Scans the input one character at a time, plus a terminating sentinel so
    a trailing ``.`` or ``..`` segment resolves like an interior one. ``..``
    never climbs above the root.
    """
    out = ["/"]
    state = _BOUNDARY
    for ch in (raw or "") + _END:
        prev, state = state, _next_state(state, ch)

        if prev == _BOUNDARY:
            if state != _BOUNDARY:
                out.append(ch)
        elif prev == _DOT:
            if state == _BOUNDARY:
                # drop "." and keep the separator already emitted
                out.pop()
            else:
                out.append(ch)
        elif prev == _DOTDOT:
            if state == _BOUNDARY:
                del out[-2:]
                if len(out) > 1:
                    out.pop()
                    while out[-1] != "/":
                        out.pop()
            else:
                out.append(ch)
        elif ch != _END:
            out.append(ch)
    return "".join(out)


def get_data_dir():
    return os.environ.get(DATA_DIR_ENV) or DEFAULT_DATA_DIR


def get_db_path(generation):
    return os.path.join(get_data_dir(), generation.db_file)
