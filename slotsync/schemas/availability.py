from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class SyncResultResponse(BaseModel):
    source_id: str
    source_name: str
    succeeded: bool
    imported_count: int
    error: Optional[str] = None
    duration_ms: float


class OccupiedRangeResponse(BaseModel):
    origin: str
    ref: str
    start: datetime
    end: datetime
    label: str = ""


class ConflictResponse(BaseModel):
    kind: str
    interval_a: OccupiedRangeResponse
    interval_b: OccupiedRangeResponse
    detected_at: datetime


class SyncRunResponse(BaseModel):
    """Per-source outcomes plus everything the merge reported"""
    started_at: datetime
    finished_at: datetime
    results: List[SyncResultResponse]
    conflicts: List[ConflictResponse]
    same_origin_overlaps: List[ConflictResponse]

    @classmethod
    def from_run(cls, run) -> "SyncRunResponse":
        def _range(r):
            return OccupiedRangeResponse(origin=r.origin, ref=r.ref, start=r.start, end=r.end, label=r.label)

        def _conflict(c):
            return ConflictResponse(
                kind=c.kind,
                interval_a=_range(c.interval_a),
                interval_b=_range(c.interval_b),
                detected_at=c.detected_at,
            )

        return cls(
            started_at=run.started_at,
            finished_at=run.finished_at,
            results=[SyncResultResponse(**asdict(r)) for r in run.results],
            conflicts=[_conflict(c) for c in run.merged.conflicts],
            same_origin_overlaps=[_conflict(c) for c in run.merged.same_origin_overlaps],
        )
