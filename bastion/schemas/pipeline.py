"""Pydantic schema for the evidence processing job summary."""

import uuid

from pydantic import BaseModel, Field


class PipelineSummary(BaseModel):
    """What one run of the evidence pipeline produced."""

    evidence_id: uuid.UUID
    tenant_id: str
    policies_evaluated: int = 0
    policies_failed: int = 0
    poam_items_created: int = 0
    incidents_created: int = 0
    skipped_steps: list[str] = Field(
        default_factory=list, description="Steps disabled by configuration."
    )
