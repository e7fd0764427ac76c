"""
Engine error types.

Only input errors and dependent-lookup failures are exceptions.  Per-row
match failures (``NO_MATCH``) and degenerate numbers are data, not errors,
and never appear here.
"""

from __future__ import annotations


class SnapshotNotFoundError(LookupError):
    """Raised when an operation targets a snapshot that does not exist.

    Attributes:
        snapshot_id: The missing snapshot's identifier.
    """

    def __init__(self, snapshot_id: str) -> None:
        self.snapshot_id = snapshot_id
        super().__init__(f"Snapshot not found: {snapshot_id!r}")


class LookupFailedError(RuntimeError):
    """Raised by a data source when an upstream lookup fails.

    Callers that can degrade (assumption and incentive resolution) catch
    this, log it, and continue without the data.

    Attributes:
        source: Short name of the failing source, e.g. ``"assumptions"``.
    """

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        super().__init__(f"{source} lookup failed: {detail}")
