from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

Base = declarative_base()

def get_engine(database_url: str, **kwargs) -> AsyncEngine:
    # SQLite connections are pinned to the creating thread unless told otherwise
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_async_engine(database_url, echo=False, future=True, **kwargs)

def get_session(engine: AsyncEngine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)

async def create_tables(engine: AsyncEngine):
    """Create every table registered on ``Base``. Local runs and tests only; deployments use alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
