from shared.database import get_engine, get_session

from .config import BOOKING_DB


def build_sessionmaker(database_url: str | None = BOOKING_DB):
    if not database_url:
        raise RuntimeError("BOOKING_DB environment variable is not set")

    engine = get_engine(database_url)
    return engine, get_session(engine)
