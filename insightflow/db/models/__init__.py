from insightflow.db.models.insight import Insight, MaturityRating, Pillar
from insightflow.db.models.item import Item
from insightflow.db.models.job import Job, JobStatus, JobType
from insightflow.db.models.source import Source, SourceStatus, SourceType

__all__ = [
    "Insight",
    "Item",
    "Job",
    "JobStatus",
    "JobType",
    "MaturityRating",
    "Pillar",
    "Source",
    "SourceStatus",
    "SourceType",
]
