"""
============================================================================
BOX OFFICE SQL - Database Schema and Writer
============================================================================
Creates the SQLite engine and writes normalized movie records into a table.

🎯 PURPOSE:
    - Open (or create) the SQLite database the whole run works against
    - Define the staging schema for normalized movies
    - Check a DataFrame against that schema before touching the database
    - Replace the target table with the new records in one transaction

📊 STAGING TABLE (default name: movies):
    Title          TEXT
    Release_Date   INTEGER  days since 1970-01-01 (NULL if unknown)
    Genre          TEXT
    Director1      TEXT
    Cast1          TEXT
    Cast2          TEXT
    Budget         FLOAT    (NULL if unknown)
    Revenue        FLOAT    (NULL if unknown)

🔧 WRITE SEMANTICS:
    - Destructive overwrite: an existing table with the same name is dropped
    - No row id column, no upsert, no merge
    - Drop + create + insert share one transaction; a failure rolls back
      and leaves the previous table in place

🔧 USAGE:
    engine = create_movie_engine(config.database.database_url)
    write_movies(engine, movies_df, "movies")
============================================================================
"""

import logging
import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
from pandas.api.types import (
    is_bool_dtype,
    is_datetime64_any_dtype,
    is_numeric_dtype,
    is_object_dtype,
    is_string_dtype,
)
from sqlalchemy import (
    Column, Float, Integer, MetaData, Table, Text,
    create_engine, event, inspect, text
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import CompileError, OperationalError, SQLAlchemyError
from tqdm import tqdm

from scripts.exceptions import MissingTableError, SchemaMismatchError, StoreUnavailableError
from scripts.normalize_movies import CURRENCY_COLUMNS, MOVIE_COLUMNS, TEXT_COLUMNS

logger = logging.getLogger(__name__)

# Release_Date is stored as a day count from this date
EPOCH = date(1970, 1, 1)

_IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

Bind = Union[Engine, Connection]


# ============================================================================
# DATABASE SETUP
# ============================================================================

def create_movie_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine used by every step of a run.

    For SQLite the parent directory of the database file is created, a few
    pragmas are set on every new connection, and transaction control is
    handed to SQLAlchemy so that CREATE/DROP/ALTER run inside BEGIN...COMMIT
    like any other statement.

    Args:
        database_url: SQLAlchemy URL, e.g. sqlite:///data/movies.sqlite
        echo: Log every SQL statement

    Returns:
        A connected-and-verified Engine

    Raises:
        StoreUnavailableError: If the URL is invalid or the database can't be opened
    """
    try:
        url = make_url(database_url)
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"Invalid database URL '{database_url}': {e}") from e

    is_sqlite = url.get_backend_name() == 'sqlite'

    if is_sqlite and url.database and url.database != ':memory:':
        try:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create directory for {url.database}: {e}") from e

    try:
        engine = create_engine(
            url,
            echo=echo,
            connect_args={
                'check_same_thread': False,
                'timeout': 30
            } if is_sqlite else {}
        )
    except SQLAlchemyError as e:
        raise StoreUnavailableError(f"Cannot create engine for '{database_url}': {e}") from e

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """
            Per-connection SQLite setup.

            - isolation_level=None: the driver stops issuing its own BEGIN,
              the "begin" listener below does it instead
            - journal_mode=WAL, synchronous=NORMAL: fast and still durable
            - temp_store=MEMORY: CREATE TABLE ... AS SELECT stays off disk
            """
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA temp_store=MEMORY")
            cursor.close()

        @event.listens_for(engine, "begin")
        def do_begin(conn):
            conn.exec_driver_sql("BEGIN")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        engine.dispose()
        raise StoreUnavailableError(f"Cannot open database '{database_url}': {e}") from e

    logger.info("Opened database %s", url.render_as_string(hide_password=True))
    return engine


# ============================================================================
# TABLE DEFINITION
# ============================================================================

def movies_table(name: str, metadata: Optional[MetaData] = None) -> Table:
    """
    Staging schema for normalized movies.

    No primary key: row identifiers are not part of the data.
    """
    check_identifier(name)
    return Table(
        name,
        metadata if metadata is not None else MetaData(),
        Column('Title', Text, comment='Movie title as given in the source'),
        Column('Release_Date', Integer, comment='Days since 1970-01-01 (INTEGER)'),
        Column('Genre', Text),
        Column('Director1', Text),
        Column('Cast1', Text),
        Column('Cast2', Text),
        Column('Budget', Float, comment='Budget in currency units, symbols stripped'),
        Column('Revenue', Float, comment='Revenue in currency units, symbols stripped'),
    )


def check_identifier(name: str) -> str:
    """Only plain identifiers are ever interpolated into SQL text."""
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid table name: {name!r}")
    return name


def quote_identifier(bind: Bind, name: str) -> str:
    """Quote a table name for the bind's dialect."""
    return bind.dialect.identifier_preparer.quote(check_identifier(name))


# ============================================================================
# SCHEMA CHECK & ROW PREPARATION
# ============================================================================

def validate_schema(df: pd.DataFrame) -> pd.DataFrame:
    """
    Make sure a DataFrame has the normalized movie layout.

    Args:
        df: Normalized movies

    Returns:
        The same data with columns in MOVIE_COLUMNS order

    Raises:
        SchemaMismatchError: On a column count, name or type mismatch
    """
    columns = list(df.columns)
    if len(columns) != len(MOVIE_COLUMNS) or set(columns) != set(MOVIE_COLUMNS):
        missing = [c for c in MOVIE_COLUMNS if c not in columns]
        extra = [c for c in columns if c not in MOVIE_COLUMNS]
        raise SchemaMismatchError(
            f"Expected {len(MOVIE_COLUMNS)} columns {MOVIE_COLUMNS}, got {len(columns)}. "
            f"Missing: {missing or 'none'}. Unexpected: {extra or 'none'}"
        )

    release = df['Release_Date']
    if not is_datetime64_any_dtype(release) and not release.isna().all():
        raise SchemaMismatchError(f"Release_Date must hold dates, got dtype {release.dtype}")

    for column in CURRENCY_COLUMNS:
        series = df[column]
        if is_bool_dtype(series) or not is_numeric_dtype(series):
            raise SchemaMismatchError(f"{column} must be numeric, got dtype {series.dtype}")

    for column in TEXT_COLUMNS:
        series = df[column]
        if not (is_object_dtype(series) or is_string_dtype(series)):
            raise SchemaMismatchError(f"{column} must hold text, got dtype {series.dtype}")

    return df[MOVIE_COLUMNS]


def _text(value: Any) -> Optional[str]:
    return None if pd.isna(value) else str(value)


def _number(value: Any) -> Optional[float]:
    return None if pd.isna(value) else float(value)


def _epoch_days(value: Any) -> Optional[int]:
    if pd.isna(value):
        return None
    return (pd.Timestamp(value).date() - EPOCH).days


def prepare_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Convert normalized movies into plain dicts for executemany.

    Missing markers (NaN, NaT, None) all become None -> SQL NULL.
    """
    rows = []
    for title, release, genre, director, cast1, cast2, budget, revenue in (
        df[MOVIE_COLUMNS].itertuples(index=False, name=None)
    ):
        rows.append({
            'Title': _text(title),
            'Release_Date': _epoch_days(release),
            'Genre': _text(genre),
            'Director1': _text(director),
            'Cast1': _text(cast1),
            'Cast2': _text(cast2),
            'Budget': _number(budget),
            'Revenue': _number(revenue),
        })
    return rows


# ============================================================================
# WRITER
# ============================================================================

def write_movies(
    engine: Engine,
    df: pd.DataFrame,
    table_name: str,
    batch_size: int = 1000,
    show_progress: bool = False
) -> int:
    """
    Replace table_name with the given normalized movies.

    Args:
        engine: Store handle from create_movie_engine
        df: Normalized movies (see normalize_movies)
        table_name: Target table; an existing one is dropped first
        batch_size: Rows per INSERT batch
        show_progress: Show a tqdm progress bar

    Returns:
        Number of rows written

    Raises:
        SchemaMismatchError: If df does not have the normalized layout
        StoreUnavailableError: If the database refuses the write
    """
    df = validate_schema(df)
    rows = prepare_rows(df)
    table = movies_table(table_name)

    try:
        with engine.begin() as conn:
            table.drop(conn, checkfirst=True)
            table.create(conn)

            with tqdm(total=len(rows), desc="   Progress", unit=" movies",
                      disable=not show_progress) as pbar:
                for start in range(0, len(rows), batch_size):
                    batch = rows[start:start + batch_size]
                    conn.execute(table.insert(), batch)
                    pbar.update(len(batch))
    except OperationalError as e:
        raise StoreUnavailableError(f"Could not write table '{table_name}': {e}") from e

    logger.info("Wrote %d rows to table %s", len(rows), table_name)
    return len(rows)


# ============================================================================
# INSPECTION HELPERS
# ============================================================================

def list_tables(bind: Bind) -> List[str]:
    """All table names in the database."""
    return sorted(inspect(bind).get_table_names())


def table_exists(bind: Bind, table_name: str) -> bool:
    return inspect(bind).has_table(check_identifier(table_name))


def count_rows(bind: Bind, table_name: str) -> int:
    """SELECT COUNT(*) on a table, through an Engine or an open Connection."""
    sql = text(f"SELECT COUNT(*) FROM {quote_identifier(bind, table_name)}")
    if isinstance(bind, Engine):
        with bind.connect() as conn:
            return conn.execute(sql).scalar_one()
    return bind.execute(sql).scalar_one()


def _type_name(col_type: Any) -> str:
    # Columns made by CREATE TABLE ... AS SELECT from an expression have no declared type
    try:
        return str(col_type)
    except CompileError:
        return ''


def describe_table(engine: Engine, table_name: str) -> pd.DataFrame:
    """
    Column layout of a table (name, declared type, nullable).

    Raises:
        MissingTableError: If the table does not exist
    """
    if not table_exists(engine, table_name):
        raise MissingTableError(f"Table '{table_name}' does not exist")

    columns = inspect(engine).get_columns(table_name)
    return pd.DataFrame(
        [
            {
                'column': col['name'],
                'type': _type_name(col['type']),
                'nullable': col.get('nullable', True),
            }
            for col in columns
        ],
        columns=['column', 'type', 'nullable']
    )


def read_table(engine: Engine, table_name: str) -> pd.DataFrame:
    """Read a whole table into a DataFrame."""
    if not table_exists(engine, table_name):
        raise MissingTableError(f"Table '{table_name}' does not exist")

    with engine.connect() as conn:
        return pd.read_sql(text(f"SELECT * FROM {quote_identifier(conn, table_name)}"), conn)
