"""SQLAlchemy 2.0 ORM models for MindWell.

Import all models here so ``init_db`` can discover them via::

    import mindwell.models.db  # noqa: F401

Every model must be imported at module level to register with the
``DeclarativeBase`` metadata.
"""

from mindwell.models.db.base import Base, TimestampMixin  # noqa: F401

from mindwell.models.db.user import User  # noqa: F401
from mindwell.models.db.chat import ChatThread, Scratchpad  # noqa: F401
from mindwell.models.db.prompt import PromptText  # noqa: F401
