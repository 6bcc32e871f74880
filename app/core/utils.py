# app/core/utils.py
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return utc_now().date()


def format_validation_error(exc: PydanticValidationError) -> str:
    """Ringkas error Pydantic jadi satu pesan yang bisa dibaca pengguna."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        msg = err.get("msg", "invalid")
        # Pesan dari model_validator diawali "Value error, "
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Data tidak valid."


def validate_model(model: Type[ModelT], data: Any) -> ModelT:
    """model_validate yang menerjemahkan error Pydantic ke ValidationError aplikasi."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        message = format_validation_error(e)
        logger.info(f"Validation failed for {model.__qualname__}: {message}")
        raise ValidationError(message) from e
