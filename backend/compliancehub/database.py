from collections.abc import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from compliancehub.config import settings

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")
_is_memory = _is_sqlite and (settings.DATABASE_URL.endswith("://") or ":memory:" in settings.DATABASE_URL)

if _is_memory:
    # in-memory SQLite: every session shares one connection
    _engine_opts = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
elif _is_sqlite:
    _engine_opts = {}
else:
    _engine_opts = {"pool_size": 5, "max_overflow": 10}

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    **_engine_opts,
)


# WAL mode + busy timeout for file-backed SQLite
if _is_sqlite and not _is_memory:
    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


async def check_db_connection() -> bool:
    """Test database connectivity. Returns True if OK."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True
