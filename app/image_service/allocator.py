"""
    Storage name allocation for uploaded files.

    A storage name is `<epoch millis>-<random int><ext>`, where `ext` is the
    lowercased extension of the client supplied name. Names are single path
    segments and are not derivable from the original filename.
"""
import os
import re
import secrets
import time
from typing import Optional

RANDOM_SPACE = 10**9

_EXTENSION_RE = re.compile(r"\.[a-z0-9]{1,10}")
_STORAGE_NAME_RE = re.compile(r"\d{1,16}-\d{1,9}(\.[a-z0-9]{1,10})?")

def storage_extension(original_name: Optional[str]) -> str:
    """Lowercased extension of the original name, or '' if unsafe or absent."""
    if not original_name:
        return ""
    # Clients on Windows may send full paths
    base = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    ext = os.path.splitext(base)[1].lower()
    return ext if _EXTENSION_RE.fullmatch(ext) else ""

def allocate_storage_name(original_name: Optional[str], now: Optional[float] = None) -> str:
    """Generates a collision resistant storage name for an upload."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{millis}-{secrets.randbelow(RANDOM_SPACE)}{storage_extension(original_name)}"

def is_storage_name(name: str) -> bool:
    return bool(_STORAGE_NAME_RE.fullmatch(name or ""))
