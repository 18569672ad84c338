"""Canonical SHA-256 digests of JSON-compatible data."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any

DIGEST_RE = re.compile(r"^sha256:[0-9a-f]{64}$")


def canonical_digest(data: Any) -> str:
    """Hash *data* after canonical JSON encoding (sorted keys, no spaces).

    Returns:
        Digest string in ``"sha256:<64-hex-chars>"`` format.
    """
    encoded = json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return "sha256:" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()
