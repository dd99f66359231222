from insightflow.services.ai_config_service import (
    AIConfigError,
    AIConfigNotSetError,
    AIConfigStore,
)
from insightflow.services.analysis_service import AnalysisService, InsightService, persist_insights
from insightflow.services.content_store import ContentStore, IngestResult
from insightflow.services.job_service import (
    JobNotFoundError,
    JobNotRunningError,
    JobService,
    UnsupportedJobTypeError,
    should_retry,
)
from insightflow.services.processor_service import JobProcessingError, ProcessorService
from insightflow.services.retrieval_service import RetrievalAnswer, RetrievalService
from insightflow.services.source_service import SourceNotFoundError, SourceService

__all__ = [
    "AIConfigError",
    "AIConfigNotSetError",
    "AIConfigStore",
    "AnalysisService",
    "ContentStore",
    "IngestResult",
    "InsightService",
    "JobNotFoundError",
    "JobNotRunningError",
    "JobProcessingError",
    "JobService",
    "ProcessorService",
    "RetrievalAnswer",
    "RetrievalService",
    "SourceNotFoundError",
    "SourceService",
    "UnsupportedJobTypeError",
    "persist_insights",
    "should_retry",
]
