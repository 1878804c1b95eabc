from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every table of the booking service (inventory and reservations) inherits
    from this base so a single ``Base.metadata`` drives Alembic and test setup.
    """

    pass
