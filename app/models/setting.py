from sqlalchemy import Column, String, Text
from app.db.session import Base


class Setting(Base):
    __tablename__ = "settings"

    k = Column(String(191), primary_key=True)
    v = Column(Text, nullable=True)
