# school_roster/db/init_db.py
from sqlalchemy import select
from sqlalchemy.orm import Session

from school_roster.core.config import settings
from school_roster.core.security_password import hash_password
from school_roster.models.user import User, UserRole

def init_db(db: Session) -> None:
    """Seed the first admin login so the API is usable on a fresh database."""
    admin = db.scalar(select(User).where(User.username == settings.SEED_ADMIN_USERNAME))
    if not admin:
        db.add(User(
            username=settings.SEED_ADMIN_USERNAME,
            email=f"{settings.SEED_ADMIN_USERNAME}@school.local",
            hashed_password=hash_password(settings.SEED_ADMIN_PASSWORD),
            role=UserRole.admin.value,
            first_name="School",
            last_name="Admin",
        ))
    db.commit()
