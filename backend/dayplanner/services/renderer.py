import re

from jinja2 import Environment, select_autoescape
from playwright.async_api import async_playwright

from dayplanner.core.config import logger
from dayplanner.core.errors import RenderFailure
from dayplanner.schemas.itinerary import GeneratedItinerary, RenderedDocument

ITINERARY_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Your Day Itinerary - {{ itinerary.city }}</title>
  <style>
    body { font-family: Arial, sans-serif; margin: 40px; }
    .header { text-align: center; margin-bottom: 30px; }
    .title { font-size: 24px; color: #333; margin-bottom: 10px; }
    .subtitle { font-size: 16px; color: #666; }
    .item { margin-bottom: 20px; padding: 15px; border-left: 4px solid #007bff; background: #f8f9fa; }
    .time { font-weight: bold; color: #007bff; }
    .activity { font-size: 18px; margin: 5px 0; }
    .location { color: #666; font-style: italic; }
    .description { margin-top: 5px; }
    .cost { color: #222; font-size: 15px; margin-top: 2px; }
    .tips { margin-top: 30px; padding: 15px; background: #e7f3ff; border-radius: 5px; }
    .total-cost { text-align: center; font-size: 18px; margin: 20px 0; }
    .maps-link a { color: #2196f3; text-decoration: underline; font-weight: 500; display: inline-block; margin-top: 6px; }
  </style>
</head>
<body>
  <div class="header">
    <div class="title">Your Perfect Day in {{ itinerary.city }}</div>
    <div class="subtitle">{{ itinerary.date }}</div>
  </div>
  <div class="total-cost"><strong>Estimated Cost: {{ itinerary.total_cost }}</strong></div>
  <div class="items">
  {%- for item in itinerary.items %}
    <div class="item">
      <div class="time">{{ item.time }} ({{ item.duration }})</div>
      <div class="activity">{{ item.activity }}</div>
      <div class="location">&#128205; {{ item.location }}</div>
      <div class="description">{{ item.description }}</div>
      <div class="cost"><strong>Cost:</strong> {{ item.cost or '' }}</div>
      {%- if item.maps_url %}
      <div class="maps-link"><a href="{{ item.maps_url }}" target="_blank">View on Google Maps</a></div>
      {%- endif %}
    </div>
  {%- endfor %}
  </div>
  <div class="tips">
    <h3>Tips for Your Day</h3>
    <ul>
    {%- for tip in itinerary.tips %}
      <li>{{ tip }}</li>
    {%- endfor %}
    </ul>
  </div>
</body>
</html>
"""

_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))
_template = _env.from_string(ITINERARY_TEMPLATE)


def build_itinerary_html(itinerary: GeneratedItinerary) -> str:
    """Lays the itinerary out as HTML: header, one block per item in order, then tips."""
    return _template.render(itinerary=itinerary)


def document_filename(itinerary: GeneratedItinerary) -> str:
    city = re.sub(r"[\\/]", "-", itinerary.city)
    date = re.sub(r"[\\/]", "-", itinerary.date)
    return f"itinerary-{city}-{date}.pdf"


class DocumentRenderer:
    """
    Prints HTML to PDF with headless Chromium.
    Every call launches its own browser and closes it before returning.
    """

    def __init__(self, chromium_sandbox: bool = True):
        self.chromium_sandbox = chromium_sandbox

    async def render_html(self, html: str) -> bytes:
        try:
            async with async_playwright() as playwright:
                browser = await playwright.chromium.launch(
                    headless=True,
                    chromium_sandbox=self.chromium_sandbox,
                    args=["--disable-dev-shm-usage", "--disable-gpu", "--no-first-run"],
                )
                try:
                    page = await browser.new_page()
                    await page.set_content(html, wait_until="load")
                    return await page.pdf(
                        format="A4",
                        margin={"top": "20px", "right": "20px", "bottom": "20px", "left": "20px"},
                        print_background=True,
                    )
                finally:
                    await browser.close()
        except Exception as e:
            logger.error(f"[PDF] Failed to generate PDF: {e}", exc_info=True)
            raise RenderFailure(str(e)) from e

    async def render(self, itinerary: GeneratedItinerary) -> RenderedDocument:
        logger.info(f"[PDF] Rendering itinerary for {itinerary.city} ({len(itinerary.items)} item(s))")
        pdf = await self.render_html(build_itinerary_html(itinerary))
        logger.info(f"[PDF] PDF generated (size: {len(pdf)} bytes)")
        return RenderedDocument(content=pdf, filename=document_filename(itinerary))
