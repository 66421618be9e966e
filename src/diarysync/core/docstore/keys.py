"""Key helpers for the document tree: push keys and key escaping."""

from __future__ import annotations

import random
import threading
import time

# Lexicographic order of this alphabet matches its index order.
PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

_FORBIDDEN = "%.#$[]/"

_push_lock = threading.Lock()
_last_push_ms = 0
_last_rand: list[int] = []


def generate_push_key(now_ms: int | None = None) -> str:
    """Return a 20-char key that sorts after every key generated before it.

    The first 8 chars encode the timestamp; the remaining 12 are random and
    are incremented (not re-drawn) for keys generated within one millisecond.
    """
    global _last_push_ms, _last_rand
    now = int(time.time() * 1000) if now_ms is None else now_ms

    with _push_lock:
        if now == _last_push_ms and _last_rand:
            i = 11
            while i >= 0 and _last_rand[i] == 63:
                _last_rand[i] = 0
                i -= 1
            if i >= 0:
                _last_rand[i] += 1
        else:
            _last_rand = [random.randrange(64) for _ in range(12)]
        _last_push_ms = now
        rand = list(_last_rand)

    stamp = []
    for _ in range(8):
        stamp.append(PUSH_CHARS[now % 64])
        now //= 64
    return "".join(reversed(stamp)) + "".join(PUSH_CHARS[r] for r in rand)


def escape_key(key: str) -> str:
    """Percent-encode characters that cannot appear in a path segment."""
    return "".join(f"%{ord(ch):02X}" if ch in _FORBIDDEN else ch for ch in key)


def unescape_key(key: str) -> str:
    out = []
    i = 0
    while i < len(key):
        ch = key[i]
        if ch == "%" and _is_hex(key[i + 1 : i + 3]):
            out.append(chr(int(key[i + 1 : i + 3], 16)))
            i += 3
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _is_hex(text: str) -> bool:
    return len(text) == 2 and all(c in "0123456789ABCDEFabcdef" for c in text)
