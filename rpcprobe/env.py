from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List

_QUOTES = ("'", '"')


def _clean_value(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    # `BASE_RPC_URL=https://... # public endpoint`
    hash_at = value.find(" #")
    if hash_at != -1:
        value = value[:hash_at].rstrip()
    return value


def parse_env_text(text: str) -> Dict[str, str]:
    """
    Parse `.env` content into a dict.

    Accepts `KEY=value` and `export KEY=value`, skips blanks and `#` lines,
    drops one pair of surrounding quotes, and cuts ` # ...` trailing comments
    from unquoted values. Later keys win.
    """
    out: Dict[str, str] = {}
    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        if s.startswith("export "):
            s = s[len("export "):].lstrip()
        key, sep, value = s.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        out[key] = _clean_value(value)
    return out


def load_env_file(path: Path, *, override: bool = False) -> List[str]:
    """Apply `path` to os.environ and return the keys that were set."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []

    applied: List[str] = []
    for key, value in parse_env_text(text).items():
        if override or os.environ.get(key) is None:
            os.environ[key] = value
            applied.append(key)
    return applied
