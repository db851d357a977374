"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from coar_exchange.db.models.job import JobRow
from coar_exchange.db.models.notification import NotificationRow

__all__ = [
    "JobRow",
    "NotificationRow",
]
