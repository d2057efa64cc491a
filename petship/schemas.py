"""
Request schemas for the JSON API.

Each handler validates its body against one of these models before any
service code runs; a malformed call is answered with a 400 and never
touches the database.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from flask import request
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Role = Literal["admin", "staff", "client", "partner"]
PetType = Literal["dog", "cat", "other"]
ConversationKind = Literal["client", "partner", "internal"]
LineItemCategory = Literal["shipping", "crate", "documentation", "insurance", "other"]
DocumentCategory = Literal[
    "health_certificate", "vaccination_record", "import_permit", "export_permit", "photo", "other"
]
DocumentStatus = Literal["pending", "approved", "rejected"]
TemplateCategory = Literal["domestic", "international", "special_needs", "general"]
QuoteRequestStatus = Literal["pending", "quoted", "accepted", "declined"]


class _Body(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


def parse_body(model: type[BaseModel]):
    """Validate the current request's JSON body against ``model``."""
    data = request.get_json(silent=True)
    return model.model_validate(data if data is not None else {})


# --------- Auth / users ---------
class LoginRequest(_Body):
    email: str = Field(..., min_length=3)
    password: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class SignupRequest(LoginRequest):
    name: str = Field(..., min_length=1, max_length=120)


class CreateUserRequest(SignupRequest):
    role: Role
    org_id: Optional[str] = None


# --------- Conversations / messages ---------
class Route(_Body):
    from_: str = Field(..., alias="from", min_length=1)
    to: str = Field(..., min_length=1)


class CreateConversationRequest(_Body):
    title: str = Field(..., min_length=1, max_length=200)
    participant_ids: List[int] = Field(default_factory=list)
    kind: ConversationKind = "client"


class UpdateConversationRequest(_Body):
    title: str = Field(..., min_length=1, max_length=200)


class AddParticipantRequest(_Body):
    user_id: int


class SendMessageRequest(_Body):
    kind: Literal["text", "quote", "product", "status"] = "text"
    text: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _status_needs_type(self):
        if self.kind == "status" and (not self.payload or not self.payload.get("type")):
            raise ValueError("status messages need a payload with a 'type'")
        return self


# --------- Shipments ---------
class CreateShipmentRequest(_Body):
    conversation_id: int
    pet_name: str = Field(..., min_length=1)
    pet_type: PetType = "other"
    pet_breed: Optional[str] = None
    pet_weight: Optional[float] = Field(None, ge=0)
    owner_name: str = Field(..., min_length=1)
    owner_email: Optional[str] = None
    owner_phone: Optional[str] = None
    route: Route
    status: str = "quote_requested"
    estimated_departure: Optional[str] = None
    estimated_arrival: Optional[str] = None
    flight_number: Optional[str] = None
    crate_size: Optional[str] = None
    special_instructions: Optional[str] = None


class UpdateShipmentRequest(_Body):
    pet_name: Optional[str] = None
    pet_breed: Optional[str] = None
    pet_weight: Optional[float] = Field(None, ge=0)
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None
    owner_phone: Optional[str] = None
    estimated_departure: Optional[str] = None
    estimated_arrival: Optional[str] = None
    actual_departure: Optional[str] = None
    actual_arrival: Optional[str] = None
    flight_number: Optional[str] = None
    crate_size: Optional[str] = None
    special_instructions: Optional[str] = None


class UpdateStatusRequest(_Body):
    status: str = Field(..., min_length=1)


class LineItem(_Body):
    description: str = Field(..., min_length=1)
    amount_cents: int = Field(..., ge=0)
    category: LineItemCategory = "other"


class BillingInfoRequest(_Body):
    total_amount_cents: Optional[int] = None
    payment_due_date: Optional[datetime] = None
    line_items: Optional[List[LineItem]] = None


class LedgerEntryRequest(_Body):
    amount_cents: int = Field(..., gt=0)
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


# --------- Quote requests ---------
class QuoteRequestSubmission(_Body):
    pet_name: str = Field(..., min_length=1)
    pet_type: PetType
    pet_breed: str = ""
    pet_weight: float = Field(0, ge=0)
    route: Route
    preferred_travel_date: str = ""
    special_requirements: str = ""


class QuoteRequestStatusUpdate(_Body):
    status: QuoteRequestStatus


# --------- Payment requests ---------
class CreatePaymentRequest(_Body):
    conversation_id: int
    amount_cents: int = Field(..., gt=0)
    description: Optional[str] = None


# --------- Documents ---------
class DocumentUploadForm(_Body):
    category: DocumentCategory = "other"
    conversation_id: Optional[int] = None
    shipment_id: Optional[int] = None
    name: Optional[str] = None
    notes: Optional[str] = None


class DocumentReviewRequest(_Body):
    status: DocumentStatus
    notes: Optional[str] = None


class AttachDocumentRequest(_Body):
    shipment_id: int


class Requirement(_Body):
    name: str = Field(..., min_length=1)
    description: str = ""
    required: bool = True
    category: DocumentCategory = "other"
    notes: Optional[str] = None


class DocumentTemplateRequest(_Body):
    title: str = Field(..., min_length=1)
    description: str = ""
    category: TemplateCategory
    requirements: List[Requirement] = Field(default_factory=list)


class DocumentTemplateUpdate(_Body):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[TemplateCategory] = None
    requirements: Optional[List[Requirement]] = None
    active: Optional[bool] = None


# --------- Catalog ---------
class ProductRequest(_Body):
    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    price_cents: int = Field(..., ge=0)
    active: bool = True


class ProductUpdate(_Body):
    name: Optional[str] = None
    sku: Optional[str] = None
    price_cents: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None


class QuoteTemplateRequest(_Body):
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    default_price_cents: int = Field(..., ge=0)


class QuoteTemplateUpdate(_Body):
    title: Optional[str] = None
    body: Optional[str] = None
    default_price_cents: Optional[int] = Field(None, ge=0)
