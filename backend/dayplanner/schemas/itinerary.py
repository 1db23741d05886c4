from enum import Enum
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, List, Literal, Dict

class PendingRequest(BaseModel):
    """
    A paid-for (or about to be paid-for) day plan request.
    Stored in the intake store under the Stripe checkout session id until payment is confirmed.
    """
    model_config = ConfigDict(frozen=True)

    session_id: str
    city: str
    date: str
    start: str
    end: str
    interests: List[str] = Field(min_length=1)
    email: EmailStr

class PaymentEventType(str, Enum):
    CHECKOUT_COMPLETED = "checkout.session.completed"
    OTHER = "other"

class PaymentEvent(BaseModel):
    """A verified, decoded payment provider notification."""
    model_config = ConfigDict(frozen=True)

    type: PaymentEventType
    session_id: Optional[str] = None
    confirmed_email: Optional[str] = None

    @property
    def is_fulfillable(self) -> bool:
        return (
            self.type is PaymentEventType.CHECKOUT_COMPLETED
            and bool(self.session_id)
            and bool(self.confirmed_email)
        )

class ItineraryItem(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: str
    activity: str
    location: str
    description: str
    duration: str
    cost: Optional[str] = None
    maps_url: Optional[str] = Field(default=None, alias="mapsUrl")

    @field_validator("cost", "duration", mode="before")
    @classmethod
    def numbers_as_text(cls, value):
        # models sometimes answer "cost": 22
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

class GeneratedItinerary(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    city: str
    date: str
    items: List[ItineraryItem]
    total_cost: str = Field(alias="totalCost")
    tips: List[str]

class RenderedDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: bytes
    filename: str
    media_type: str = "application/pdf"

# --- HTTP payloads ---

class CheckoutRequest(BaseModel):
    """
    The input model for the /checkout endpoint.
    Email is optional here so a missing address is reported as a 400 before Stripe is called.
    """
    city: str
    date: str
    start: str
    end: str
    interests: List[str] = Field(default_factory=list)
    email: Optional[str] = None

class CheckoutResponse(BaseModel):
    url: str

class WebhookAck(BaseModel):
    received: bool = True

class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    timestamp: str
    services: Dict[str, bool]
    pending_requests: int

class DiagnosticRequest(CheckoutRequest):
    """Form data for the diagnostic endpoints; `customPrompt` overrides the template."""
    custom_prompt: Optional[str] = Field(default=None, alias="customPrompt")
