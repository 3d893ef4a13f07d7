"""Response models for the Ally Invest REST and streaming APIs.

Every top-level JSON value the API sends decodes into an ``APIResponse``.
REST calls populate ``response``; the streaming host emits a ``status``
value followed by ``trade`` events. Numeric fields arrive as JSON strings
and are converted during validation.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter, ValidationError

from system.ally_api.errors import DecodeError


def _normalize_quotes(value: Any) -> Any:
    """Map the quote payload onto a list of mappings.

    A single quote arrives as a bare object, several as an array.
    """
    if isinstance(value, dict):
        value = [value]
    elif not isinstance(value, list):
        raise ValueError(f"expected quote object or array, got {type(value).__name__}")
    # null quote fields decode to empty strings
    return [
        {k: "" if v is None else v for k, v in item.items()} if isinstance(item, dict) else item
        for item in value
    ]


QuoteArray = Annotated[list[dict[str, str]], BeforeValidator(_normalize_quotes)]

_QUOTE_ARRAY = TypeAdapter(QuoteArray)


def parse_quote_array(raw: bytes | str) -> list[dict[str, str]]:
    """Decode a raw quote payload.

    The first significant character selects the shape: ``[`` decodes a list
    of quote mappings, ``{`` a single mapping wrapped in a one-element list.

    Args:
        raw: JSON text of the quote value.

    Returns:
        One mapping per symbol.

    Raises:
        DecodeError: If the payload is empty, starts with any other token,
            or does not hold string-valued mappings.
    """
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    text = text.lstrip()
    if not text:
        raise DecodeError("no input", field="quote")

    lead = text[0]
    if lead not in "[{":
        raise DecodeError(f"unexpected leading character {lead!r}", field="quote")

    try:
        return _QUOTE_ARRAY.validate_json(text)
    except ValidationError as e:
        raise decode_error_from_validation(e, prefix="quote") from e


def decode_error_from_validation(error: ValidationError, prefix: str | None = None) -> DecodeError:
    """Build a DecodeError naming the first field pydantic rejected."""
    first = error.errors()[0]
    parts = [str(part) for part in first["loc"]]
    if prefix:
        parts.insert(0, prefix)
    return DecodeError(first["msg"], field=".".join(parts) or None)


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Quotes(_Model):
    quotetype: str | None = None
    quote: QuoteArray | None = None


class Response(_Model):
    """Body of a REST response."""

    id: str | None = Field(default=None, alias="@id")
    elapsedtime: int | None = None
    error: str | None = None
    quotes: Quotes | None = None
    accounts: dict[str, Any] | None = None


class Trade(_Model):
    """A trade event from the streaming quotes host."""

    cvol: int | None = None
    datetime: str | None = None
    exch: dict[str, Any] | None = None
    last: float | None = None
    symbol: str | None = None
    timestamp: int | None = None
    vl: int | None = None
    vwap: float | None = None


class APIResponse(_Model):
    """One decoded top-level JSON value."""

    status: str | None = None
    response: Response | None = None
    trade: Trade | None = None

    @property
    def quotes(self) -> list[dict[str, str]]:
        """Quote mappings carried by a REST quotes response, if any."""
        if self.response is None or self.response.quotes is None:
            return []
        return self.response.quotes.quote or []

    def to_json(self) -> str:
        """Pretty-print using the API's key names, leaving out unset fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)
