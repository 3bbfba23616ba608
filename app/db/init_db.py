import logging

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import get_password_hash
from app.models.user import User

logger = logging.getLogger(__name__)


def create_database():
    """Create the Postgres database if it doesn't exist. No-op for other backends."""
    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("postgresql"):
        return

    try:
        # Connect to default 'postgres' database to check/create target DB
        con = psycopg2.connect(
            user=url.username,
            password=url.password,
            host=url.host,
            port=url.port or 5432,
            dbname="postgres"
        )
        con.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        cur = con.cursor()

        cur.execute("SELECT 1 FROM pg_catalog.pg_database WHERE datname = %s", (url.database,))
        exists = cur.fetchone()

        if not exists:
            logger.info("Database %s does not exist. Creating...", url.database)
            cur.execute(f'CREATE DATABASE "{url.database}"')
            logger.info("Database %s created successfully.", url.database)
        else:
            logger.info("Database %s already exists.", url.database)

        cur.close()
        con.close()
    except psycopg2.Error as e:
        logger.error("Error creating database: %s", e)
        # Proceeding anyway, maybe it exists or connection params are for the target DB directly


def seed_admin(db: Session) -> User:
    """Create the configured admin account when no user with that name exists."""
    user = db.query(User).filter(User.username == settings.ADMIN_USERNAME).first()
    if user:
        return user

    email = settings.ADMIN_EMAIL or f"{settings.ADMIN_USERNAME}@localhost"
    user = User(
        username=settings.ADMIN_USERNAME,
        email=email,
        password_hash=get_password_hash(settings.ADMIN_PASSWORD),
        role="admin",
        status="active",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Seeded admin user %s", user.username)
    return user


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_database()
