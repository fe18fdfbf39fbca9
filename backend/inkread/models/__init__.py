"""
InkRead Backend — ORM Models
==============================

Importing this package registers every table on `Base.metadata`
(used by Alembic autogenerate and by the test suite's create_all).
"""

from inkread.models.analytics import AnalyticsEvent
from inkread.models.credits import IpUsage, UserCredit
from inkread.models.upload import UploadedFile

__all__ = ["AnalyticsEvent", "IpUsage", "UploadedFile", "UserCredit"]
