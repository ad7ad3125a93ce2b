# aravalli/assistant.py
import json
import re
from typing import List, Optional

from .errors import ExternalServiceError, ValidationError
from .gemini_client import GeminiClient
from .imaging import decode_image_data_url
from .log import get_logger

logger = get_logger(__name__)

CHAT_SYSTEM_INSTRUCTION = """
You are "Aravalli AI", an intelligent assistant for the "Aravalli Range Monitor" application.
Your goal is to provide information about the Aravalli mountain range, environmental conservation, ecology, and sustainability.

CRITICAL MODERATION RULES:
1. You must ONLY answer questions related to:
   - The Aravalli Range and its geography/history.
   - Environmental conservation, ecology, and biodiversity.
   - Climate change, pollution, and sustainability.
   - The data shown in this dashboard (NDVI, Nightlight, etc.).
2. If a user asks about anything else (e.g., politics, entertainment, coding, general knowledge unrelated to nature), you must politely decline.
   - Example refusal: "I specialize in environmental monitoring for the Aravalli range. I cannot assist with that topic."
3. Be concise, helpful, and data-driven where possible.
4. If asked for suggestions, provide actionable conservation tips.
"""

CHAT_FALLBACK = "I couldn't generate a response. Please try again."

IMAGE_PROMPT = "Analyze this satellite image for environmental monitoring. Is there deforestation or construction? Be concise."
IMAGE_FALLBACK = "Visual analysis service unavailable. Using statistical simulation."

SUGGESTIONS_PROMPT = (
    "Generate 3 innovative, actionable, and specific suggestions for conserving the Aravalli mountain range. "
    "Focus on technology, policy, and community action. "
    "Return ONLY a JSON array with keys: category, title, description, impact (High/Medium/Low)."
)

DEFAULT_SUGGESTIONS = [
    {
        "category": "Conservation",
        "title": "Native Species Reforestation",
        "description": "Plant drought-resistant native species like Khejri and Rohida to stabilize soil and improve biodiversity.",
        "impact": "High",
    },
    {
        "category": "Policy",
        "title": "Strict Mining Buffer Zones",
        "description": "Enforce a 1km buffer zone around protected forest areas where no commercial activity is permitted.",
        "impact": "High",
    },
    {
        "category": "Community",
        "title": "Citizen Watch Programs",
        "description": "Empower local communities with mobile tools to report illegal dumping and encroachment anonymously.",
        "impact": "Medium",
    },
]

SUGGESTION_KEYS = ("category", "title", "description", "impact")
_ARRAY_RE = re.compile(r"\[.*\]", re.S)


async def chat(llm: GeminiClient, message: str) -> str:
    if not message or not message.strip():
        raise ValidationError("Message is required")
    reply = await llm.generate_text(message, system_instruction=CHAT_SYSTEM_INSTRUCTION)
    return reply or CHAT_FALLBACK


async def explain_image(llm: GeminiClient, image: Optional[str]) -> str:
    """Short visual assessment of an uploaded image; falls back to a fixed notice."""
    decoded = decode_image_data_url(image)
    if decoded is None or not llm.configured:
        return IMAGE_FALLBACK
    image_bytes, mime_type = decoded
    try:
        text = await llm.describe_image(image_bytes, mime_type, IMAGE_PROMPT)
    except ExternalServiceError:
        return IMAGE_FALLBACK
    return text or "No explanation provided."


def parse_suggestions(text: str) -> List[dict]:
    match = _ARRAY_RE.search(text or "")
    if not match:
        raise ExternalServiceError("AI returned no suggestions.")
    try:
        items = json.loads(match.group(0))
    except ValueError as e:
        raise ExternalServiceError("AI returned malformed suggestions.") from e

    suggestions = []
    for item in items if isinstance(items, list) else []:
        if isinstance(item, dict) and all(k in item for k in SUGGESTION_KEYS):
            suggestions.append({k: str(item[k]) for k in SUGGESTION_KEYS})
    if not suggestions:
        raise ExternalServiceError("AI returned no suggestions.")
    return suggestions


async def generate_suggestions(llm: GeminiClient) -> List[dict]:
    text = await llm.generate_text(SUGGESTIONS_PROMPT)
    suggestions = parse_suggestions(text)
    logger.info("Generated %d suggestions", len(suggestions))
    return suggestions
