from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from ..app.config import Config


def make_engine(database_url: str = None):
    """Create an engine; SQLite connections may be shared across request threads."""
    url = database_url or Config.DATABASE_URL
    connect_args = {}
    if url.startswith("sqlite"):
        # Writers queue on the database lock instead of failing straight away
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args)


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Create the SQLAlchemy engine
engine = make_engine()

# Create a configured "Session" class
SessionLocal = make_session_factory(engine)

# Create a base class for our models
Base = declarative_base()

def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_session_factory():
    """Dependency for work that outlives the request session (post-commit archival)."""
    return SessionLocal

def create_tables(bind=None):
    """Create all tables in the database."""
    # Import all models here before calling create_all
    # This ensures they are registered with the Base metadata
    from .models import Category, Product, Bill, BillItem, BillSequence
    Base.metadata.create_all(bind=bind or engine)

if __name__ == "__main__":
    create_tables()
    print("Database tables created successfully.")
