from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from src.api.deps import (
    get_booking_service,
    get_completion_gate,
    get_current_principal,
    get_db,
)
from src.api.errors import to_http_exception
from src.api.schemas.schemas import (
    BookingCreateRequest,
    BookingEnvelope,
    BookingListEnvelope,
    BookingResponse,
    BookingUpdateRequest,
    MarkAllReadResponse,
    MessageResponse,
    NotificationEnvelope,
    NotificationListEnvelope,
    NotificationResponse,
    ReviewCreateRequest,
    ReviewEnvelope,
    ReviewListEnvelope,
    ReviewResponse,
)
from src.application.booking_service import BookingService, CustomerContact
from src.application.completion_gate import CompletionEvidenceGate
from src.application.notification_service import NotificationService
from src.application.review_service import ReviewService
from src.domain.actors import ActorRole, Principal
from src.domain.exceptions import BookingCoreError, ForbiddenError, InvalidInputError


router = APIRouter()


def _booking_envelope(booking) -> BookingEnvelope:
    return BookingEnvelope(booking=BookingResponse.model_validate(booking))


@router.get("/health")
def health():
    return {"message": "Service booking engine is running"}


# ---------------------
# BOOKINGS
# ---------------------

@router.get("/bookings", response_model=BookingListEnvelope)
def list_bookings(
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    bookings = service.list_bookings(principal)
    return BookingListEnvelope(
        bookings=[BookingResponse.model_validate(item) for item in bookings]
    )


@router.post(
    "/bookings",
    response_model=BookingEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    request: BookingCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    try:
        if principal.role is not ActorRole.CUSTOMER:
            raise ForbiddenError("Only customers can create bookings")

        booking = service.create_booking(
            customer_id=principal.id,
            service_id=request.service_id,
            scheduled_date=request.scheduled_date,
            scheduled_time=request.scheduled_time,
            contact=CustomerContact(
                name=request.customer_name,
                email=request.customer_email,
                phone=request.customer_phone,
                address=request.customer_address,
            ),
            notes=request.notes,
        )
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return _booking_envelope(booking)


@router.get("/bookings/{booking_id}", response_model=BookingEnvelope)
def get_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    try:
        booking = service.get_booking(booking_id, principal)
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return _booking_envelope(booking)


@router.patch("/bookings/{booking_id}", response_model=BookingEnvelope)
def update_booking(
    booking_id: int,
    request: BookingUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    fields = request.model_fields_set
    try:
        if request.status is not None and "notes" in fields:
            raise InvalidInputError("Update status and notes in separate requests")

        if request.status is not None:
            booking = service.transition(booking_id, principal, request.status)
        elif "notes" in fields:
            booking = service.update_notes(booking_id, principal, request.notes)
        else:
            raise InvalidInputError("Nothing to update: provide status or notes")
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return _booking_envelope(booking)


@router.delete("/bookings/{booking_id}", response_model=MessageResponse)
def delete_booking(
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    service: BookingService = Depends(get_booking_service),
):
    try:
        service.delete_booking(booking_id, principal)
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return MessageResponse(message="Booking deleted successfully")


@router.post("/bookings/{booking_id}/completion", response_model=BookingEnvelope)
def upload_completion_evidence(
    booking_id: int,
    image: Optional[UploadFile] = File(None),
    principal: Principal = Depends(get_current_principal),
    gate: CompletionEvidenceGate = Depends(get_completion_gate),
):
    content = image.file.read() if image is not None else b""
    content_type = image.content_type if image is not None else ""
    filename = image.filename if image is not None else None

    try:
        booking = gate.complete(
            booking_id,
            principal,
            content=content,
            content_type=content_type,
            filename=filename,
        )
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return _booking_envelope(booking)


# ---------------------
# NOTIFICATIONS
# ---------------------

@router.get("/notifications", response_model=NotificationListEnvelope)
def list_notifications(
    limit: int = Query(default=NotificationService.DEFAULT_LIMIT),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        notifications = NotificationService(db).list_notifications(principal, limit=limit)
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return NotificationListEnvelope(
        notifications=[NotificationResponse.model_validate(item) for item in notifications]
    )


@router.patch("/notifications/mark-all-read", response_model=MarkAllReadResponse)
def mark_all_notifications_read(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        count = NotificationService(db).mark_all_read(principal)
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return MarkAllReadResponse(message="All notifications marked as read", count=count)


@router.patch("/notifications/{notification_id}", response_model=NotificationEnvelope)
def mark_notification_read(
    notification_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        notification = NotificationService(db).mark_read(notification_id, principal)
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return NotificationEnvelope(
        notification=NotificationResponse.model_validate(notification)
    )


# ---------------------
# REVIEWS
# ---------------------

@router.post(
    "/reviews",
    response_model=ReviewEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_review(
    request: ReviewCreateRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        review = ReviewService(db).create_review(
            principal,
            booking_id=request.booking_id,
            rating=request.rating,
            comment=request.comment,
        )
    except BookingCoreError as exc:
        raise to_http_exception(exc) from exc

    return ReviewEnvelope(review=ReviewResponse.model_validate(review))


@router.get("/reviews", response_model=ReviewListEnvelope)
def list_reviews(
    service_id: Optional[int] = Query(default=None, alias="serviceId"),
    db: Session = Depends(get_db),
):
    if service_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Service ID is required", "kind": "INVALID_INPUT"},
        )

    reviews = ReviewService(db).list_reviews(service_id)
    return ReviewListEnvelope(
        reviews=[ReviewResponse.model_validate(item) for item in reviews]
    )
