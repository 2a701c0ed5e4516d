"""Database configuration and initialization."""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from marketplace.exceptions import ConflictError

logger = logging.getLogger(__name__)

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _engine_options(database_uri, echo):
    if database_uri.startswith('sqlite'):
        # In-memory SQLite must share one connection across the app
        return {
            'echo': echo,
            'connect_args': {'check_same_thread': False},
            'poolclass': StaticPool,
        }
    return {
        'echo': echo,
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }


def init_db(app):
    """Initialize database connection."""
    global engine, db_session
    
    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(
        database_uri,
        **_engine_options(database_uri, app.config.get('SQLALCHEMY_ECHO', False))
    )
    
    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )
    
    Base.query = db_session.query_property()
    
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def get_session():
    """Get database session."""
    return db_session


def create_schema():
    """Create every table known to the metadata."""
    import marketplace.models  # noqa: F401  (registers mappers)
    Base.metadata.create_all(bind=engine)


def drop_schema():
    import marketplace.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def conflict_from_integrity_error(error, message):
    """Translate a unique-constraint violation into a domain ConflictError."""
    logger.info(f"Integrity error translated to conflict: {getattr(error, 'orig', error)}")
    return ConflictError(message)
