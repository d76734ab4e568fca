"""
=============================================================================
BYTE-RANGE RESOLUTION (RFC 7233)
=============================================================================

Browsers and download managers may ask for a slice of a resource instead of
the whole thing, using the Range request header:

    Range: bytes=0-99        First 100 bytes
    Range: bytes=500-        Everything from byte 500 to the end
    Range: bytes=-200        The last 200 bytes

The server answers with 206 Partial Content and tells the client which
slice it got:

    HTTP/1.1 206 Partial Content
    Content-Range: bytes 0-99/4194304
    Content-Length: 100

If the requested slice lies entirely outside the resource, the answer is
416 Range Not Satisfiable, and the total size is reported so the client
can retry with a valid range:

    HTTP/1.1 416 Range Not Satisfiable
    Content-Range: bytes */4194304

=============================================================================
RESOLUTION RULES
=============================================================================

    ┌──────────────────────────────┬──────────────────────────────────────┐
    │ Header                       │ Outcome (total = L)                  │
    ├──────────────────────────────┼──────────────────────────────────────┤
    │ (missing)                    │ FULL                                 │
    │ garbage / other unit         │ FULL                                 │
    │ bytes=0-99,200-299           │ FULL   (multi-range not supported)   │
    │ bytes=S-E                    │ PARTIAL(S, min(E, L-1))              │
    │ bytes=S-                     │ PARTIAL(S, L-1)                      │
    │ bytes=-N                     │ PARTIAL(max(L-N, 0), L-1)            │
    │ S > E, S >= L, bytes=-0      │ UNSATISFIABLE                        │
    └──────────────────────────────┴──────────────────────────────────────┘

Range support is an optimization. Whenever the header cannot be understood
we fall back to serving the whole body rather than failing the request.

=============================================================================
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RangeKind(Enum):
    """What the server should send back for a Range header."""
    FULL = "full"
    PARTIAL = "partial"
    UNSATISFIABLE = "unsatisfiable"


@dataclass(frozen=True)
class RangeOutcome:
    """
    Result of resolving a Range header against a content length.

    For PARTIAL outcomes, start and end are inclusive byte offsets with
    0 <= start <= end < total.
    """

    kind: RangeKind
    total: int
    start: int = 0
    end: int = 0

    @classmethod
    def full(cls, total: int) -> "RangeOutcome":
        return cls(RangeKind.FULL, total)

    @classmethod
    def partial(cls, start: int, end: int, total: int) -> "RangeOutcome":
        if not 0 <= start <= end < total:
            raise ValueError(f"Invalid byte range {start}-{end} for length {total}")
        return cls(RangeKind.PARTIAL, total, start, end)

    @classmethod
    def unsatisfiable(cls, total: int) -> "RangeOutcome":
        return cls(RangeKind.UNSATISFIABLE, total)

    @property
    def length(self) -> int:
        """Number of body bytes this outcome selects."""
        if self.kind is RangeKind.PARTIAL:
            return self.end - self.start + 1
        if self.kind is RangeKind.FULL:
            return self.total
        return 0

    @property
    def content_range(self) -> Optional[str]:
        """
        Value for the Content-Range response header.

        None for FULL responses, which don't carry the header.
        """
        if self.kind is RangeKind.PARTIAL:
            return f"bytes {self.start}-{self.end}/{self.total}"
        if self.kind is RangeKind.UNSATISFIABLE:
            return f"bytes */{self.total}"
        return None


# bytes=START-END where either side (but not both) may be empty.
_RANGE_SPEC_PATTERN = re.compile(r"^(\d*)-(\d*)$")


def resolve_range(range_header: Optional[str], total_length: int) -> RangeOutcome:
    """
    Resolve a Range header against the total length of a resource.

    Args:
        range_header: Raw value of the Range request header, or None.
        total_length: Size of the resource in bytes.

    Returns:
        RangeOutcome describing a full, partial or unsatisfiable response.
    """
    if not range_header:
        return RangeOutcome.full(total_length)

    unit, sep, spec = range_header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        return RangeOutcome.full(total_length)

    spec = spec.strip()
    if "," in spec:
        # Multiple ranges would need a multipart/byteranges body
        return RangeOutcome.full(total_length)

    match = _RANGE_SPEC_PATTERN.match(spec)
    if not match:
        return RangeOutcome.full(total_length)

    first, last = match.groups()
    if not first and not last:
        return RangeOutcome.full(total_length)

    # ─────────────────────────────────────────────────────────────────────
    # SUFFIX RANGE: bytes=-N
    # ─────────────────────────────────────────────────────────────────────
    if not first:
        suffix_length = int(last)
        if suffix_length == 0 or total_length == 0:
            return RangeOutcome.unsatisfiable(total_length)
        start = max(total_length - suffix_length, 0)
        return RangeOutcome.partial(start, total_length - 1, total_length)

    # ─────────────────────────────────────────────────────────────────────
    # BOUNDED OR OPEN-ENDED RANGE: bytes=S-E / bytes=S-
    # ─────────────────────────────────────────────────────────────────────
    start = int(first)
    end = int(last) if last else total_length - 1

    if start >= total_length or start > end:
        return RangeOutcome.unsatisfiable(total_length)

    # A last-byte-pos past the end just means "until the end"
    end = min(end, total_length - 1)

    return RangeOutcome.partial(start, end, total_length)
