"""Persistence infrastructure."""

from tradetalk.infrastructure.persistence.business_data_repository import (
    SQLiteBusinessDataRepository,
)
from tradetalk.infrastructure.persistence.context_repository import (
    SQLiteContextSnapshotRepository,
)
from tradetalk.infrastructure.persistence.database import DatabaseManager
from tradetalk.infrastructure.persistence.exceptions import (
    DatabaseError,
    PersistenceError,
    SnapshotDecodeError,
)
from tradetalk.infrastructure.persistence.insight_repository import (
    SQLiteInsightRepository,
)
from tradetalk.infrastructure.persistence.models import (
    ConversationStateModel,
    FinancialMetricModel,
    InventoryItemModel,
    ProactiveInsightModel,
    ResponsePatternModel,
    SalesTransactionModel,
    SupplierModel,
    UserProfileModel,
)
from tradetalk.infrastructure.persistence.pattern_repository import (
    SQLiteResponsePatternRepository,
)
from tradetalk.infrastructure.persistence.user_repository import (
    ProfilePersonaClassifier,
    SQLiteUserDirectory,
)

__all__ = [
    "ConversationStateModel",
    "DatabaseError",
    "DatabaseManager",
    "FinancialMetricModel",
    "InventoryItemModel",
    "PersistenceError",
    "ProactiveInsightModel",
    "ProfilePersonaClassifier",
    "ResponsePatternModel",
    "SQLiteBusinessDataRepository",
    "SQLiteContextSnapshotRepository",
    "SQLiteInsightRepository",
    "SQLiteResponsePatternRepository",
    "SQLiteUserDirectory",
    "SalesTransactionModel",
    "SnapshotDecodeError",
    "SupplierModel",
    "UserProfileModel",
]
