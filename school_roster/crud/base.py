from contextlib import contextmanager
from typing import Any, Callable, Dict, Generic, Iterator, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from school_roster.core.config import settings
from school_roster.core.errors import TransientStorageError, ValidationError
from school_roster.db.base_class import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchema = TypeVar("CreateSchema", bound=BaseModel)
UpdateSchema = TypeVar("UpdateSchema", bound=BaseModel)
SchemaType = TypeVar("SchemaType", bound=BaseModel)
T = TypeVar("T")

STORAGE_ERRORS = (OperationalError, PoolTimeoutError)


def validated(schema: Type[SchemaType], obj_in: Any) -> SchemaType:
    """Coerce a dict (or the schema itself) into ``schema``; failures become ValidationError."""
    if isinstance(obj_in, schema):
        return obj_in
    try:
        return schema.model_validate(obj_in)
    except PydanticValidationError as exc:
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        raise ValidationError("Invalid input", details={"errors": errors}) from exc


class CRUDBase(Generic[ModelType, CreateSchema, UpdateSchema]):
    def __init__(self, model: Type[ModelType]): self.model = model

    @contextmanager
    def storage_guard(self, db: Session) -> Iterator[None]:
        """Translate driver timeouts/unavailability into TransientStorageError."""
        try:
            yield
        except STORAGE_ERRORS as exc:
            db.rollback()
            raise TransientStorageError("Storage unavailable, retry later.") from exc

    def read(self, db: Session, fn: Callable[[], T]) -> T:
        """Run an idempotent read, retrying transient storage failures a bounded number of times."""
        attempts = max(1, settings.READ_RETRY_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                return fn()
            except STORAGE_ERRORS as exc:
                db.rollback()
                if attempt == attempts:
                    raise TransientStorageError("Storage unavailable, retry later.") from exc
        raise AssertionError("unreachable")

    def update(self, db: Session, db_obj: ModelType, obj_in: UpdateSchema | Dict[str, Any]) -> ModelType:
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        for f,v in data.items(): setattr(db_obj, f, v)
        with self.storage_guard(db):
            db.add(db_obj); db.commit(); db.refresh(db_obj)
        return db_obj
