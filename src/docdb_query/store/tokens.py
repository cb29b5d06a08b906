"""
Continuation token codec shared by the reference stores.

A token records where the previous page ended: the sort position of its
last document (ORDER BY keys plus the id tie-break), how many documents
have been served so far (for ``TOP n`` across pages) and a fingerprint of
the query that produced it. Resuming means "everything strictly after this
position", so pages never overlap and nothing is skipped as long as the
collection does not change in between.

Tokens are opaque to callers: URL-safe base64 over compact JSON.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..exceptions import InvalidPaginationStateError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..translation.native import NativeQuery

TOKEN_VERSION = 1


@dataclass(frozen=True)
class ResumePoint:
    fingerprint: str
    position: tuple[tuple[int, Any], ...]
    served: int = 0


def fingerprint(native: NativeQuery) -> str:
    """Stable digest of what a query selects and how it orders."""
    payload = json.dumps(
        {
            "text": native.text,
            "parameters": native.parameter_dicts(),
            "partition_key": native.partition_key,
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:32]


def encode(fingerprint: str, position: Sequence[tuple[int, Any]], served: int) -> str:
    """Encode a resume point. ``served`` counts documents delivered so far."""
    payload = json.dumps(
        {
            "v": TOKEN_VERSION,
            "fp": fingerprint,
            "pos": [list(k) for k in position],
            "n": served,
        },
        separators=(",", ":"),
    )
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode(token: str, expected_fingerprint: str) -> ResumePoint:
    """
    Decode a token and check that it belongs to the query being run.

    Raises:
        InvalidPaginationStateError: The token is malformed, from another
            token version, or was issued for a different query.
    """
    try:
        padded = token + "=" * (-len(token) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        version = data["v"]
        fp = data["fp"]
        position = tuple((int(rank), value) for rank, value in data["pos"])
        served = int(data["n"])
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
        raise InvalidPaginationStateError(
            "Malformed continuation token", has_continuation=True
        ) from e
    if version != TOKEN_VERSION:
        raise InvalidPaginationStateError(
            f"Unsupported continuation token version {version}",
            has_continuation=True,
        )
    if fp != expected_fingerprint:
        raise InvalidPaginationStateError(
            "Continuation token was issued for a different query",
            has_continuation=True,
        )
    return ResumePoint(fingerprint=fp, position=position, served=served)
