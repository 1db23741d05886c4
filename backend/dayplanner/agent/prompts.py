from dayplanner.schemas.itinerary import PendingRequest

# Only these placeholders are supported: ${city}, ${date}, ${start}, ${end}, ${interests}.
# They are replaced literally by fill_prompt_template; adding one means updating both.
DEFAULT_ITINERARY_PROMPT = """
You are a travel planner AI. Generate a personalized, timestamped itinerary for someone visiting ${city} on ${date} from ${start} to ${end}. Their interests include: ${interests}.

Requirements:
- If the time window is short (2 hours or less), only suggest 1-2 focused activities (e.g., a cafe stop and a nearby view).
- If the time window is long (4+ hours), break the day into 6-8 segments covering breakfast, lunch, dinner, and various activities.
- For each activity, include:
  - "time": exact start time
  - "activity": a clear activity title
  - "location": name + neighborhood or address
  - "description": 1-sentence experience summary
  - "duration": e.g., "1 hour"
  - "cost": estimated cost in USD (e.g., "$10" or "Free")
  - "mapsUrl": a Google Maps search link for the location, using this format: "https://www.google.com/maps/search/?api=1&query=" followed by the URL-encoded "location, city"

Guidelines:
- Use real, well-rated places in ${city}.
- Match activities to the user's interests. If limited interests are given, default to a general balance of food, culture, nature, and fun.
- Group stops by neighborhood to reduce unnecessary travel.
- Add up to 3 smart tips at the end: local insights, reservations, dress/weather, transport, etc.

Respond ONLY with a valid JSON object in this strict structure, no other text or explanation:
{
  "items": [
    {
      "time": "09:00",
      "activity": "Breakfast at Tartine Bakery",
      "location": "Tartine Bakery, 600 Guerrero St (Mission District)",
      "description": "Start your day with world-famous pastries and coffee.",
      "duration": "1 hour",
      "cost": "$15",
      "mapsUrl": "https://www.google.com/maps/search/?api=1&query=Tartine+Bakery+San+Francisco"
    }
  ],
  "totalCost": "$80-120",
  "tips": ["..."]
}
"""

def fill_prompt_template(template: str, request: PendingRequest) -> str:
    """Substitutes the five request fields into the template by plain string replacement."""
    return (
        template
        .replace("${city}", request.city)
        .replace("${date}", request.date)
        .replace("${start}", request.start)
        .replace("${end}", request.end)
        .replace("${interests}", ", ".join(request.interests))
    )
