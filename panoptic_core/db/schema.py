"""SQLAlchemy Core table definition for the state store."""

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import StateStoreError

STATE_STORE_TABLE_NAME = "sdk_state_entry"

state_store_metadata = sa.MetaData()

state_store_table = sa.Table(
    STATE_STORE_TABLE_NAME,
    state_store_metadata,
    sa.Column("entry_key", sa.Text(), primary_key=True),
    sa.Column("entry_value", sa.LargeBinary(), nullable=False),
    sa.Column("updated_at_ms", sa.BigInteger(), nullable=False),
)


def db_create_state_store_schema(engine: sa.Engine) -> None:
    """Create the state store table when it does not exist.

    Alembic owns the schema in deployed databases; this helper serves local
    SQLite files and tests.

    Args:
        engine: SQLAlchemy engine.

    Returns:
        None: This function does not return a value.

    Raises:
        ValueError: Raised when engine is None.
        StateStoreError: Raised when the table cannot be created.
    """

    if engine is None:
        raise ValueError("engine must not be None")
    try:
        state_store_metadata.create_all(engine)
    except SQLAlchemyError as error:
        raise StateStoreError("failed to create state store schema") from error
