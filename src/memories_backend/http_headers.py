from __future__ import annotations


def sanitize_filename(filename: str | None, *, fallback: str = "archivo") -> str:
    v = (filename or "").strip()
    # Defend against client-supplied paths.
    v = v.split("/")[-1].split("\\")[-1]
    # Defend against header injection.
    v = v.replace("\r", "").replace("\n", "").replace("\x00", "")
    if v in {".", ".."}:
        v = ""
    if not v:
        v = fallback
    # Provider names and local keys stay reasonably small.
    if len(v) > 150:
        v = v[:150]
    return v