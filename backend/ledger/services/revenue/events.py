"""Inbound invoice event contract."""

from datetime import date
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ledger.core.errors import EventValidationError


class _EventModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class InvoiceSnapshot(_EventModel):
    """The revenue-relevant fields of an invoice at one point in time."""

    id: str = Field(min_length=1)
    status: str
    amount: int = Field(ge=0, description="Amount in cents")
    invoice_date: date | str = Field(alias="date")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept numeric invoice ids."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str) -> str:
        return v.strip().lower()


class InvoiceCreatedEvent(_EventModel):
    type: Literal["invoice.created"] = "invoice.created"
    event_id: str | None = None
    invoice: InvoiceSnapshot


class InvoiceUpdatedEvent(_EventModel):
    type: Literal["invoice.updated"] = "invoice.updated"
    event_id: str | None = None
    previous_invoice: InvoiceSnapshot
    invoice: InvoiceSnapshot


class InvoiceDeletedEvent(_EventModel):
    type: Literal["invoice.deleted"] = "invoice.deleted"
    event_id: str | None = None
    invoice: InvoiceSnapshot


InvoiceEvent = Annotated[
    InvoiceCreatedEvent | InvoiceUpdatedEvent | InvoiceDeletedEvent,
    Field(discriminator="type"),
]

_invoice_event_adapter: TypeAdapter[InvoiceEvent] = TypeAdapter(InvoiceEvent)


def parse_invoice_event(payload: Any) -> InvoiceCreatedEvent | InvoiceUpdatedEvent | InvoiceDeletedEvent:
    """Validate a raw event payload.

    Raises:
        EventValidationError: if the payload does not match any event type.
    """
    try:
        return _invoice_event_adapter.validate_python(payload)
    except ValidationError as e:
        raise EventValidationError(f"Malformed invoice event: {e.error_count()} validation error(s)") from e
