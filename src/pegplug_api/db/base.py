from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase, declared_attr


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models with automatic table naming."""

    @declared_attr.directive
    def __tablename__(cls) -> str:  # noqa: N805
        return cls.__name__.lower()


def generate_id() -> str:
    """Opaque string identifier used as primary key for every table."""

    return uuid4().hex
