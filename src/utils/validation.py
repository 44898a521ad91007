"""Input validation helpers shared by models and services."""

import re
from typing import Any, Optional, TypeVar
from pydantic import BaseModel, ValidationError
from src.utils.errors import ValidationFailedError

ModelT = TypeVar("ModelT", bound=BaseModel)

EMAIL_PATTERN = re.compile(r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$")
MIN_PHONE_DIGITS = 10
MAX_PHONE_DIGITS = 15


def normalize_email(value: str) -> str:
    """Trim and lower-case an email, rejecting malformed addresses."""
    email = (value or "").strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValueError("Please enter a valid email")
    return email


def normalize_phone(value: Optional[str]) -> str:
    """Strip everything but digits and require 10-15 of them."""
    digits = re.sub(r"\D", "", value or "")
    if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
        raise ValueError(
            f"Phone number must contain {MIN_PHONE_DIGITS}-{MAX_PHONE_DIGITS} digits"
        )
    return digits


def parse_input(model: type[ModelT], data: Any) -> ModelT:
    """Validate raw input into a model, raising ValidationFailedError on failure."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())),
                "message": error.get("msg", "invalid value"),
            }
            for error in e.errors()
        ]
        summary = "; ".join(f"{d['field']}: {d['message']}" for d in details)
        raise ValidationFailedError(f"Invalid input data: {summary}", details=details)
