import logging
import os

from auth import get_password_hash
from database import Base, engine, get_db
from models import Admin

logger = logging.getLogger(__name__)


def ensure_default_admin(db) -> None:
    username = os.environ.get("DEFAULT_ADMIN_USERNAME", "admin").strip()
    password = os.environ.get("DEFAULT_ADMIN_PASSWORD")
    if not password:
        logger.info("DEFAULT_ADMIN_PASSWORD not set; skipping default admin creation.")
        return
    if db.query(Admin).filter(Admin.username == username).first():
        return
    db.add(Admin(username=username, hashed_password=get_password_hash(password), is_active=True))
    db.commit()
    logger.info("Default admin created: username=%s", username)


def run_bootstrap() -> None:
    Base.metadata.create_all(bind=engine)
    db = next(get_db())
    try:
        ensure_default_admin(db)
    finally:
        db.close()
