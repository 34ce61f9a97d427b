from provider_guard.adapters.outbound.persistence.database import (
    create_engine,
    create_session_factory,
    init_database,
)
from provider_guard.adapters.outbound.persistence.repositories import (
    SQLAlchemyBlacklistRepository,
    SQLAlchemySettingsRepository,
)

__all__ = [
    "SQLAlchemyBlacklistRepository",
    "SQLAlchemySettingsRepository",
    "create_engine",
    "create_session_factory",
    "init_database",
]
