from .store import EntityStore
from .unit_of_work import UnitOfWork

__all__ = ["EntityStore", "UnitOfWork"]
