import asyncio
import html
import os
import tempfile
from typing import Callable

import yagmail

from dayplanner.core.config import logger
from dayplanner.core.errors import DeliveryFailure
from dayplanner.schemas.itinerary import GeneratedItinerary, RenderedDocument

def build_subject(itinerary: GeneratedItinerary) -> str:
    return f"Your {itinerary.city} Day Itinerary - {itinerary.date}"

def build_body(itinerary: GeneratedItinerary) -> str:
    return (
        f"<h2>Your Perfect Day in {html.escape(itinerary.city)}</h2>"
        f"<p>Thank you for your purchase! Here's your personalized day itinerary for {html.escape(itinerary.date)}.</p>"
        f"<p>Estimated cost: {html.escape(itinerary.total_cost)}</p>"
        "<p>Enjoy your adventure!</p>"
    )

class DeliveryDispatcher:
    """
    Emails a rendered itinerary through yagmail.
    Failures surface as DeliveryFailure; retrying is the caller's decision.
    """

    def __init__(
        self,
        sender_email: str,
        app_password: str,
        host: str = "smtp.gmail.com",
        port: int = 465,
        timeout: float = 30.0,
        smtp_factory: Callable[..., yagmail.SMTP] = yagmail.SMTP,
    ):
        self.sender_email = sender_email
        self.app_password = app_password
        self.host = host
        self.port = port
        self.timeout = timeout  # socket timeout, forwarded by yagmail to smtplib
        self.smtp_factory = smtp_factory

    @property
    def configured(self) -> bool:
        return bool(self.sender_email and self.app_password)

    async def send(self, email: str, document: RenderedDocument, itinerary: GeneratedItinerary) -> None:
        if not self.configured:
            raise DeliveryFailure("Email functionality is disabled because Gmail credentials are not configured.")

        logger.info(f"[EMAIL] Sending itinerary to {email} with attachment {document.filename}")
        try:
            await asyncio.to_thread(self._send_sync, email, document, itinerary)
        except Exception as e:
            logger.error(f"[EMAIL] Failed to send email to {email}: {e}", exc_info=True)
            raise DeliveryFailure(str(e)) from e
        logger.info(f"[EMAIL] Email sent to {email}")

    def _send_sync(self, email: str, document: RenderedDocument, itinerary: GeneratedItinerary) -> None:
        # yagmail names attachments after the file on disk
        with tempfile.TemporaryDirectory(prefix="itinerary-") as tmp_dir:
            attachment_path = os.path.join(tmp_dir, document.filename)
            with open(attachment_path, "wb") as fh:
                fh.write(document.content)

            yag_client = self.smtp_factory(
                user=self.sender_email,
                password=self.app_password,
                host=self.host,
                port=self.port,
                timeout=self.timeout,
            )
            try:
                yag_client.send(
                    to=email,
                    subject=build_subject(itinerary),
                    contents=build_body(itinerary),
                    attachments=[attachment_path],
                )
            finally:
                yag_client.close()
