"""
Property validation.

Ordinary objects carry a map of tagged property values: ``{"type": ...,
"value": ..., "config": ...}``. The ``type`` tag selects the variant and the
variant fixes the shape of ``value``. System objects (tags, collections,
saved queries) carry their own fixed property schemas instead.

Everything is validated with pydantic on write and dumped back to plain
JSON-compatible dicts with ``exclude_unset`` so that what a caller stored is
what a caller reads back.
"""

import re
from datetime import date, datetime
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import urlparse

import pydantic
from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
)
from pydantic_core import PydanticSerializationError

from .errors import ValidationError
from .types import ObjectType


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_date(value: str) -> str:
    if date.fromisoformat(value).isoformat() != value:
        raise ValueError(f"not a calendar date: {value!r}")
    return value


def _check_datetime(value: str) -> str:
    datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


def _check_url(value: str) -> str:
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"not an absolute URL: {value!r}")
    return value


def _check_email(value: str) -> str:
    if not _EMAIL_RE.match(value):
        raise ValueError(f"not an email address: {value!r}")
    return value


# Dates stay strings so the stored form is exactly what was written
DateStr = Annotated[StrictStr, AfterValidator(_check_date)]
DateTimeStr = Annotated[StrictStr, AfterValidator(_check_datetime)]
DateOrDateTimeStr = Annotated[StrictStr, AfterValidator(_check_datetime)]
UrlStr = Annotated[StrictStr, AfterValidator(_check_url)]
EmailStr = Annotated[StrictStr, AfterValidator(_check_email)]
Number = Union[StrictInt, StrictFloat]
PositiveNumber = Union[Annotated[StrictInt, Field(gt=0)], Annotated[StrictFloat, Field(gt=0)]]


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


# ---------------------------------------------------------------------------
# Property value variants
# ---------------------------------------------------------------------------

class TextConfig(_Model):
    max_length: Optional[StrictInt] = Field(default=None, alias="maxLength", gt=0)
    placeholder: Optional[StrictStr] = None


class TextProperty(_Model):
    type: Literal["text"]
    value: StrictStr
    config: Optional[TextConfig] = None


class LongTextProperty(_Model):
    type: Literal["long-text"]
    value: StrictStr
    config: Optional[TextConfig] = None


class NumberConfig(_Model):
    min: Optional[Number] = None
    max: Optional[Number] = None
    step: Optional[PositiveNumber] = None
    unit: Optional[StrictStr] = None


class NumberProperty(_Model):
    type: Literal["number"]
    value: Number
    config: Optional[NumberConfig] = None


class DateConfig(_Model):
    min_date: Optional[DateOrDateTimeStr] = Field(default=None, alias="minDate")
    max_date: Optional[DateOrDateTimeStr] = Field(default=None, alias="maxDate")


class DateProperty(_Model):
    type: Literal["date"]
    value: DateStr
    config: Optional[DateConfig] = None


class DateTimeConfig(DateConfig):
    timezone: Optional[StrictStr] = None


class DateTimeProperty(_Model):
    type: Literal["datetime"]
    value: DateTimeStr
    config: Optional[DateTimeConfig] = None


class OptionsConfig(_Model):
    options: list[StrictStr] = Field(min_length=1)


class SelectProperty(_Model):
    type: Literal["select"]
    value: StrictStr
    config: OptionsConfig


class MultiSelectProperty(_Model):
    type: Literal["multi-select"]
    value: list[StrictStr]
    config: OptionsConfig


class CheckboxConfig(_Model):
    label: Optional[StrictStr] = None


class CheckboxProperty(_Model):
    type: Literal["checkbox"]
    value: StrictBool
    config: Optional[CheckboxConfig] = None


class UrlConfig(_Model):
    open_in_new_tab: Optional[StrictBool] = Field(default=None, alias="openInNewTab")


class UrlProperty(_Model):
    type: Literal["url"]
    value: UrlStr
    config: Optional[UrlConfig] = None


class EmailProperty(_Model):
    type: Literal["email"]
    value: EmailStr
    config: Optional[dict[str, Any]] = None


class FileValue(_Model):
    url: UrlStr
    name: StrictStr
    size: PositiveNumber
    mime_type: StrictStr = Field(alias="mimeType")


class FileConfig(_Model):
    max_size: Optional[PositiveNumber] = Field(default=None, alias="maxSize")
    allowed_types: Optional[list[StrictStr]] = Field(default=None, alias="allowedTypes")


class FileProperty(_Model):
    type: Literal["file"]
    value: FileValue
    config: Optional[FileConfig] = None


class AiGeneratedConfig(_Model):
    prompt: StrictStr
    model: Optional[StrictStr] = None
    generated_at: Optional[DateOrDateTimeStr] = Field(default=None, alias="generatedAt")


class AiGeneratedProperty(_Model):
    type: Literal["ai-generated"]
    value: StrictStr
    config: Optional[AiGeneratedConfig] = None


class CurrencyConfig(_Model):
    currency: StrictStr = "USD"  # ISO 4217
    min: Optional[Number] = None
    max: Optional[Number] = None


class CurrencyProperty(_Model):
    type: Literal["currency"]
    value: Number
    config: Optional[CurrencyConfig] = None


class RatingConfig(_Model):
    max_rating: StrictInt = Field(default=5, alias="maxRating", gt=0)
    allow_half: StrictBool = Field(default=False, alias="allowHalf")


class RatingProperty(_Model):
    type: Literal["rating"]
    value: StrictInt = Field(ge=0)
    config: Optional[RatingConfig] = None


PropertyValue = Annotated[
    Union[
        TextProperty,
        LongTextProperty,
        NumberProperty,
        DateProperty,
        DateTimeProperty,
        SelectProperty,
        MultiSelectProperty,
        CheckboxProperty,
        UrlProperty,
        EmailProperty,
        FileProperty,
        AiGeneratedProperty,
        CurrencyProperty,
        RatingProperty,
    ],
    Field(discriminator="type"),
]

PROPERTY_TYPES = (
    "text", "long-text", "number", "date", "datetime", "select",
    "multi-select", "checkbox", "url", "email", "file", "ai-generated",
    "currency", "rating",
)

_property_map = TypeAdapter(dict[StrictStr, PropertyValue])


# ---------------------------------------------------------------------------
# System object property schemas
# ---------------------------------------------------------------------------

class SortSpec(_Model):
    field: Literal["createdAt", "updatedAt", "title", "type"] = "createdAt"
    order: Literal["asc", "desc"] = "desc"


class TagProperties(BaseModel):
    model_config = ConfigDict(extra="allow")

    color: Optional[StrictStr] = None
    icon: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    category: Optional[StrictStr] = None


class DefaultFilters(_Model):
    properties: Optional[dict[str, Any]] = None
    tags: Optional[list[StrictStr]] = None


class CollectionProperties(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    object_type: ObjectType = Field(alias="objectType")
    icon: Optional[StrictStr] = None
    color: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    default_filters: Optional[DefaultFilters] = Field(default=None, alias="defaultFilters")
    default_sort: Optional[SortSpec] = Field(default=None, alias="defaultSort")


# Query properties live in query.py; they are registered lazily below to
# avoid an import cycle.
_SYSTEM_SCHEMAS: dict[ObjectType, type[BaseModel]] = {
    ObjectType.TAG: TagProperties,
    ObjectType.COLLECTION: CollectionProperties,
}


def _format_errors(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def _system_schema(object_type: ObjectType) -> Optional[type[BaseModel]]:
    if object_type is ObjectType.QUERY:
        from .query import QueryProperties
        return QueryProperties
    return _SYSTEM_SCHEMAS.get(object_type)


def validate_properties(object_type: ObjectType, properties: Optional[dict]) -> dict[str, Any]:
    """
    Validate a properties mapping for an object of ``object_type``.

    Returns the canonical JSON-compatible form to store.

    Raises:
        ValidationError: if any value does not match its declared shape
    """
    if properties is None:
        properties = {}
    if not isinstance(properties, dict):
        raise ValidationError("properties must be a mapping")

    schema = _system_schema(object_type)
    try:
        if schema is not None:
            model = schema.model_validate(properties)
            return model.model_dump(mode="json", by_alias=True, exclude_unset=True)
        parsed = _property_map.validate_python(properties)
        return _property_map.dump_python(parsed, mode="json", by_alias=True, exclude_unset=True)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Invalid properties for {object_type.value}: {_format_errors(e)}"
        ) from e
    except PydanticSerializationError as e:
        raise ValidationError(
            f"Invalid properties for {object_type.value}: {e}"
        ) from e


def validate_property_value(value: Any) -> dict[str, Any]:
    """Validate a single tagged property value."""
    return validate_properties(ObjectType.CUSTOM, {"value": value})["value"]


def unwrap_value(prop: Any) -> Any:
    """The comparable payload of a stored property.

    Tagged values compare by their ``value``; system-schema properties
    (plain strings, nested dicts) compare as stored.
    """
    if isinstance(prop, dict) and "type" in prop and "value" in prop:
        return prop["value"]
    return prop
