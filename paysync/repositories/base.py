from typing import Generic, Type, TypeVar, Optional, List
from sqlalchemy import select
from sqlalchemy.orm import Session

ModelType = TypeVar("ModelType")


class Repository(Generic[ModelType]):
    """Keyed store for one model type bound to a unit-of-work session.

    ``add`` and ``update`` only flush; the caller owns the commit so a
    reconciliation step lands atomically or not at all.
    """

    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    def get_by_id(self, id: int) -> Optional[ModelType]:
        return self.db.get(self.model, id)

    def get_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        stmt = select(self.model).order_by(self.model.id).offset(skip).limit(limit)
        return list(self.db.scalars(stmt))

    def add(self, obj: ModelType) -> ModelType:
        self.db.add(obj)
        self.db.flush()
        return obj

    def update(self, obj: ModelType) -> ModelType:
        # Objects loaded through this session are already tracked; merge covers detached ones.
        if obj not in self.db:
            obj = self.db.merge(obj)
        self.db.flush()
        return obj
