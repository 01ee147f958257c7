from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from product_migrator.core.models import ProgressEvent


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MigrationAccepted(_ApiModel):
    """Response to a newly queued migration job"""
    job_id: str
    status: str = "queued"


class MigrationStatus(_ApiModel):
    """Latest known state of a migration job"""
    job_id: str
    running: bool
    event_count: int = 0
    latest: Optional[ProgressEvent] = None


class CancelResult(_ApiModel):
    job_id: str
    cancelled: bool


class PlatformList(_ApiModel):
    platforms: List[str]
