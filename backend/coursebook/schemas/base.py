"""
Base schemas shared by request and response DTOs.

The public API speaks camelCase (``studentId``, ``scheduledDate``); Python
code uses snake_case field names and either spelling is accepted on input.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_core import core_schema


class StandardizedModel(BaseModel):
    """Response base: camelCase on the wire, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
    )


class StrictRequestModel(BaseModel):
    """Request DTO base that always forbids unexpected fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
    )


class Money(Decimal):
    """Decimal amount on input, plain JSON number on output."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def to_decimal(value: Any) -> Decimal:
            if isinstance(value, Decimal):
                return value
            try:
                return Decimal(str(value))
            except InvalidOperation as exc:
                raise ValueError(f"Not a valid amount: {value!r}") from exc

        return core_schema.no_info_after_validator_function(
            to_decimal,
            core_schema.union_schema(
                [
                    core_schema.is_instance_schema(Decimal),
                    core_schema.int_schema(),
                    core_schema.float_schema(),
                    core_schema.str_schema(),
                ]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                float,
                info_arg=False,
                return_schema=core_schema.float_schema(),
            ),
        )
