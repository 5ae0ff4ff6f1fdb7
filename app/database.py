from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings

engine_kwargs = {}
if settings.DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    # In-memory databases live per connection; share a single one
    if settings.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(settings.DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def load_models():
    # Import all models so Base.metadata and relationship() strings resolve
    import app.models.alert  # noqa: F401
    import app.models.batch  # noqa: F401
    import app.models.inventory_movement  # noqa: F401
    import app.models.location  # noqa: F401
    import app.models.order  # noqa: F401
    import app.models.product  # noqa: F401
    import app.models.supplier  # noqa: F401
    import app.models.user  # noqa: F401


def init_db():
    load_models()
    Base.metadata.create_all(bind=engine)
