from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.dialects import postgresql, sqlite
from app.config import get_settings

settings = get_settings()


def normalize_database_url(database_url: str) -> str:
    """Convert a plain database URL to its async driver form."""
    # Support both PostgreSQL and SQLite
    if database_url.startswith("sqlite"):
        # SQLite with aiosqlite for local testing
        if ":///" in database_url and "+aiosqlite" not in database_url:
            database_url = database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return database_url
    if database_url.startswith("postgres://") or database_url.startswith("postgresql://"):
        # PostgreSQL with asyncpg for production
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif "+asyncpg" not in database_url:
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return database_url
    raise ValueError(f"Unsupported database URL: {database_url}")


engine = create_async_engine(normalize_database_url(settings.database_url), echo=settings.debug)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


def insert_ignoring_conflicts(db: AsyncSession, model, index_elements):
    """
    Build an INSERT that silently skips rows violating the unique index
    formed by ``index_elements``. The check and the insert happen in one
    statement, so concurrent writers cannot both succeed.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model)
    else:
        raise ValueError(f"Unsupported database dialect: {dialect}")
    return stmt.on_conflict_do_nothing(index_elements=index_elements)


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
