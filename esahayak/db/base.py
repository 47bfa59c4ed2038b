# esahayak/db/base.py
from sqlalchemy.orm import DeclarativeBase

# Single Declarative Base used by ALL models.
# Model modules register their tables via esahayak.db.model_registry.
class Base(DeclarativeBase):
    pass
