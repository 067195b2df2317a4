from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.state_machine import BookingStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Required fields are checked by the booking service so that a missing
# field is reported the same way from every caller.
class BookingCreateRequest(CamelModel):
    service_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class BookingUpdateRequest(CamelModel):
    status: Optional[BookingStatus] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class ProviderSummary(CamelModel):
    id: int
    name: Optional[str] = None
    email: str


class ServiceSummary(CamelModel):
    id: int
    name: str
    category: Optional[str] = None
    price: Decimal
    provider_id: int


class CustomerSummary(CamelModel):
    id: int
    name: Optional[str] = None
    email: str


class BookingResponse(CamelModel):
    id: int
    service_id: int
    customer_id: int
    provider_id: int
    status: BookingStatus
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_address: str
    scheduled_date: date
    scheduled_time: str
    total_amount: Decimal
    notes: Optional[str] = None
    completion_evidence_ref: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    service: Optional[ServiceSummary] = None
    customer: Optional[CustomerSummary] = None


class BookingEnvelope(BaseModel):
    booking: BookingResponse


class BookingListEnvelope(BaseModel):
    bookings: list[BookingResponse]


class MessageResponse(BaseModel):
    message: str


class NotificationResponse(CamelModel):
    id: int
    provider_id: int
    title: str
    message: str
    type: str
    booking_id: Optional[int] = None
    is_read: bool
    created_at: datetime


class NotificationEnvelope(BaseModel):
    notification: NotificationResponse


class NotificationListEnvelope(BaseModel):
    notifications: list[NotificationResponse]


class MarkAllReadResponse(BaseModel):
    message: str
    count: int


class ReviewCreateRequest(CamelModel):
    booking_id: Optional[int] = None
    rating: Optional[int] = None
    comment: Optional[str] = Field(default=None, max_length=2000)


class ReviewResponse(CamelModel):
    id: int
    booking_id: int
    service_id: int
    customer_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class ReviewEnvelope(BaseModel):
    review: ReviewResponse


class ReviewListEnvelope(BaseModel):
    reviews: list[ReviewResponse]
