"""
Complaint commitments.

A commitment is the SHA-256 of one canonical serialization of the complaint
content. Anyone holding the disclosed content can recompute it and compare
against the stored (and anchored) value without trusting the server.

Canonical form:
- only the content fields below, every one of them always present
- absent text fields become "", `anonymous` becomes a bool
- JSON, sorted keys, compact separators, Unicode preserved, UTF-8
"""

import hmac
import json
from typing import Any, Dict, Mapping

from whistlebox.core.crypto import sha256_hex

TEXT_FIELDS = ("title", "description", "location", "category", "date")
CONTENT_FIELDS = TEXT_FIELDS + ("anonymous",)


def normalize(content: Mapping[str, Any]) -> Dict[str, Any]:
    normalized: Dict[str, Any] = {}
    for field in TEXT_FIELDS:
        value = content.get(field)
        normalized[field] = "" if value is None else str(value)
    normalized["anonymous"] = bool(content.get("anonymous", False))
    return normalized


def canonicalize(content: Mapping[str, Any]) -> bytes:
    return json.dumps(
        normalize(content),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")


def commit(content: Mapping[str, Any]) -> str:
    return sha256_hex(canonicalize(content))


def verify_commitment(content: Mapping[str, Any], digest: str) -> bool:
    if not digest:
        return False
    return hmac.compare_digest(commit(content), digest.lower())
