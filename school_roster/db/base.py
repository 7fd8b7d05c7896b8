# school_roster/db/base.py
from school_roster.db.base_class import Base  # noqa: F401

# register every table on Base.metadata (alembic autogenerate, create_all)
import school_roster.models.student  # noqa: F401
import school_roster.models.user     # noqa: F401
import school_roster.models.attendance  # noqa: F401
import school_roster.models.fee  # noqa: F401
