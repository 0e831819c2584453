"""Repository protocols."""

from tradetalk.domain.repositories.business_data_repository import (
    BusinessDataRepository,
)
from tradetalk.domain.repositories.context_repository import (
    ContextSnapshotRepository,
)
from tradetalk.domain.repositories.insight_repository import InsightRepository
from tradetalk.domain.repositories.response_pattern_repository import (
    ResponsePatternRepository,
)
from tradetalk.domain.repositories.user_directory import UserDirectory

__all__ = [
    "BusinessDataRepository",
    "ContextSnapshotRepository",
    "InsightRepository",
    "ResponsePatternRepository",
    "UserDirectory",
]
