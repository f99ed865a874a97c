import sqlalchemy
from sqlalchemy import Column, String
from sqlalchemy.orm import declarative_base
from uuid_extension import uuid7

Base = declarative_base()


class BaseModel(Base):
    __abstract__ = True
    # uuid7 ids double as artifact filenames (screenshots/<id>.webp, filmstrips/<id>.json)
    id = Column(String, primary_key=True, default=lambda: str(uuid7()), index=True)
    created_at = Column(
        sqlalchemy.DateTime(timezone=True), server_default=sqlalchemy.func.now(), nullable=False
    )
    updated_at = Column(
        sqlalchemy.DateTime(timezone=True),
        server_default=sqlalchemy.func.now(),
        onupdate=sqlalchemy.func.now(),
        nullable=False,
    )

# Note: Models import this Base. Do not import models here to avoid circular imports.
# perfwatch.platform.db.session.init_db imports them before create_all.
