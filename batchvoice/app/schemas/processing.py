from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from batchvoice.app.domain.models import ProcessingStats


class StartBatchRequest(BaseModel):
    file_ids: Optional[List[str]] = Field(
        None, description="Ids to enqueue. Every file in the store when omitted."
    )


class QueueActionResponse(BaseModel):
    count: int = Field(..., description="Number of files affected")
    queue: List[str] = Field(default_factory=list, description="ProcessingQueue after the action")


class StatsResponse(BaseModel):
    total: int
    completed: int
    failed: int
    processing: int
    pending: int
    review_pending: int
    approved: int
    rejected: int
    completion_rate: float
    is_processing: bool
    queue_length: int
    review_queue_length: int
    current_file_id: Optional[str] = None

    @classmethod
    def from_stats(cls, stats: ProcessingStats, current_file_id: Optional[str] = None) -> "StatsResponse":
        return cls(
            total=stats.total,
            completed=stats.completed,
            failed=stats.failed,
            processing=stats.processing,
            pending=stats.pending,
            review_pending=stats.review_pending,
            approved=stats.approved,
            rejected=stats.rejected,
            completion_rate=stats.completion_rate,
            is_processing=stats.is_processing,
            queue_length=stats.queue_length,
            review_queue_length=stats.review_queue_length,
            current_file_id=current_file_id,
        )


class ApproveRequest(BaseModel):
    edited_text: Optional[str] = Field(None, description="Edited rewrite to keep before approval")
