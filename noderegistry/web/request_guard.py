from __future__ import annotations

import json
from typing import Any, List, Tuple


def json_depth(obj: Any, max_depth: int = 10) -> int:
    """
    Computes JSON nesting depth. Raises ValueError if max_depth exceeded.
    """
    stack = [(obj, 1)]
    seen_max = 1
    while stack:
        cur, d = stack.pop()
        if d > max_depth:
            raise ValueError("json too deeply nested")
        seen_max = max(seen_max, d)
        if isinstance(cur, dict):
            stack.extend((v, d + 1) for v in cur.values())
        elif isinstance(cur, list):
            stack.extend((v, d + 1) for v in cur)
    return seen_max


def enforce_body_limits(body: bytes, *, max_bytes: int) -> None:
    if body is None:
        return
    if len(body) > int(max_bytes):
        raise ValueError("request too large")
    if b"\x00" in body:
        raise ValueError("binary payload rejected")


def parse_json_body(body: bytes) -> Any:
    """
    Empty body -> {} so that shape validation (not JSON decoding) rejects it.
    Undecodable body -> None, which the validator treats as malformed.
    """
    if not body:
        return {}
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


def _parse_accept(header: str) -> List[Tuple[str, float]]:
    out: List[Tuple[str, float]] = []
    for part in (header or "").split(","):
        bits = [b.strip() for b in part.split(";")]
        media = bits[0].lower()
        if not media:
            continue
        q = 1.0
        for b in bits[1:]:
            if b.startswith("q="):
                try:
                    q = float(b[2:])
                except ValueError:
                    q = 0.0
        out.append((media, q))
    return out


def wants_html(accept_header: str) -> bool:
    """
    True when text/html outranks application/json (ties: first listed wins).
    """
    ranked = _parse_accept(accept_header)
    best_html = max((q for m, q in ranked if m == "text/html"), default=0.0)
    best_json = max((q for m, q in ranked if m in {"application/json", "*/*", "application/*"}), default=0.0)
    if best_html <= 0.0:
        return False
    if best_html != best_json:
        return best_html > best_json
    for media, _q in ranked:
        if media == "text/html":
            return True
        if media in {"application/json", "*/*", "application/*"}:
            return False
    return False
