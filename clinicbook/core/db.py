from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import settings
from .base import Base

engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session():
    async with SessionLocal() as session:
        yield session

def import_models():
    # register every table on Base.metadata
    from clinicbook.modules.directory import models as _directory  # noqa: F401
    from clinicbook.modules.bookings import models as _bookings  # noqa: F401
    from clinicbook.modules.notifications import models as _notifications  # noqa: F401
    from clinicbook.modules.audit import models as _audit  # noqa: F401

async def init_models():
    ## In dev-only "create_all" mode the app owns the schema; otherwise, migrations own it.
    if settings.DB_MANAGE == "create_all":
        import_models()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
