from sqlalchemy import Column, String, DateTime, func, Integer
from app.db.session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(191), unique=True, nullable=False, index=True)
    email = Column(String(191), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="author", index=True) # admin, editor, author
    status = Column(String(20), nullable=False, default="active", index=True) # active, inactive, suspended
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == "active"
