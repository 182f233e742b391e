from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

FULL_NAME_MIN_LENGTH = 2
FULL_NAME_MAX_LENGTH = 120
MESSAGE_MIN_LENGTH = 10
MESSAGE_MAX_LENGTH = 400


class FormValidationError(ValueError):
    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


class FormValues(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    full_name: str = Field(alias="fullName")
    message: str = ""

    @field_validator("full_name")
    @classmethod
    def _check_full_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < FULL_NAME_MIN_LENGTH:
            raise PydanticCustomError(
                "full_name_too_short", "Tu nombre debe tener al menos 2 caracteres."
            )
        if len(value) > FULL_NAME_MAX_LENGTH:
            raise PydanticCustomError(
                "full_name_too_long", "Mantén el nombre debajo de 120 caracteres."
            )
        return value

    @field_validator("message")
    @classmethod
    def _check_message(cls, value: str) -> str:
        if len(value) > MESSAGE_MAX_LENGTH:
            raise PydanticCustomError(
                "message_too_long", "El mensaje puede tener hasta 400 caracteres."
            )
        trimmed = value.strip()
        if trimmed and len(trimmed) < MESSAGE_MIN_LENGTH:
            raise PydanticCustomError(
                "message_too_short",
                "Si vas a dejar un mensajito, escribí al menos 10 caracteres.",
            )
        return trimmed

    @property
    def has_message(self) -> bool:
        return bool(self.message)


def validate_form(values: FormValues | Mapping[str, object]) -> FormValues:
    """Validate raw form input, raising `FormValidationError` with one message per field."""
    if isinstance(values, FormValues):
        return values
    try:
        return FormValues.model_validate(dict(values))
    except ValidationError as e:
        errors: dict[str, str] = {}
        for err in e.errors():
            loc = err.get("loc") or ("form",)
            field = str(loc[0])
            if field == "fullName":
                field = "full_name"
            errors.setdefault(field, str(err.get("msg", "invalid")))
        raise FormValidationError(errors) from e
