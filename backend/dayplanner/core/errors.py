class DayPlannerError(Exception):
    """Base class for every error raised by the fulfillment pipeline."""


class SignatureInvalid(DayPlannerError):
    """The webhook payload could not be authenticated."""


class WebhookNotConfigured(DayPlannerError):
    """No webhook signing secret is configured, so nothing can be verified."""


class SessionNotFound(DayPlannerError, KeyError):
    """No pending request exists for the session (unknown or already consumed)."""

    def __init__(self, session_id: str):
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"No pending request for session {self.session_id}"


class CheckoutFailure(DayPlannerError):
    """The payment provider refused to create a checkout session."""


class RenderFailure(DayPlannerError):
    """The itinerary could not be rendered to a document."""


class DeliveryFailure(DayPlannerError):
    """The rendered itinerary could not be handed to the mail transport."""
