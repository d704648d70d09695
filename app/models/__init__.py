# Access Ledger — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.access_event import AccessEvent   # noqa
