"""
Shared module for common utilities across the notifier.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging

- shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: Bus message id for log correlation
  - events/: Redis pool and broadcast publishing
  - redis/constants.py: Stream keys and consumer group naming

- shared.models: SQLAlchemy models (users, follows, notification records)

- shared.utils: Utilities
  - exceptions.py: Domain exceptions with structured context

IMPORT EXAMPLES:
    from shared.config.settings import settings
    from shared.config.logging import get_logger
    from shared.infrastructure.db import SessionLocal, safe_commit
    from shared.utils.exceptions import ResolutionError
"""
