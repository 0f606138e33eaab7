"""Gemini integration for waste classification, cleanup verification, and the citizen assistant."""
import json
import re
from typing import Any, Dict, Iterable, List

from flask import current_app
from google import genai
from google.genai import types

from models import ComplaintType, Urgency
from utils.image_utils import ImagePayloadError, decode_image_payload


class AIVisionError(Exception):
    """Raised when the AI service cannot return a valid result."""


WASTE_PROMPT = (
    "Analyze this image for a waste management platform. "
    "1. Is there garbage or waste visible? "
    "2. What type of waste is it? (plastic, organic, mixed, construction, etc.) "
    "3. How urgent is the cleanup? (Low, Medium, High) "
    "4. Provide a brief description. "
    "Return the result in JSON format with fields isWaste, wasteType, urgency, confidence (0-1), description."
)

DEAD_ANIMAL_PROMPT = (
    "Analyze this image for a public hygiene platform. "
    "1. Is there a dead animal visible? "
    "2. What type of animal is it? (dog, cat, cow, bird, etc.) "
    "3. How urgent is the removal? (Low, Medium, High) "
    "4. Provide a brief description. "
    "Return the result in JSON format with fields isDeadAnimal, animalType, urgency, confidence (0-1), description."
)

CLEANUP_PROMPT = (
    "Compare these two images: 'Before' (first) and 'After' (second) cleanup. "
    "Has the waste been cleared? "
    "Give a cleanliness score from 0 to 100. "
    "Provide feedback. "
    "Return JSON with fields verified, score, feedback."
)

ASSISTANT_INSTRUCTION = (
    "You are the Clean Madurai AI Assistant. "
    "Help users report waste, track complaints, and learn about waste disposal in Madurai. "
    "Be professional, helpful, and encouraging. "
    "Madurai is one of the oldest cities in India, and we want to make it the cleanest. "
    "If asked about reporting, explain that they can upload a photo and the AI will verify it. "
    "If asked about disposal, suggest segregation (organic vs inorganic)."
)

_URGENCY_ENUM = [u.value for u in Urgency]

WASTE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "isWaste": {"type": "BOOLEAN"},
        "wasteType": {"type": "STRING"},
        "urgency": {"type": "STRING", "enum": _URGENCY_ENUM},
        "confidence": {"type": "NUMBER"},
        "description": {"type": "STRING"},
    },
    "required": ["isWaste", "wasteType", "urgency", "confidence", "description"],
}

DEAD_ANIMAL_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "isDeadAnimal": {"type": "BOOLEAN"},
        "animalType": {"type": "STRING"},
        "urgency": {"type": "STRING", "enum": _URGENCY_ENUM},
        "confidence": {"type": "NUMBER"},
        "description": {"type": "STRING"},
    },
    "required": ["isDeadAnimal", "urgency", "confidence", "description"],
}

CLEANUP_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "verified": {"type": "BOOLEAN"},
        "score": {"type": "NUMBER"},
        "feedback": {"type": "STRING"},
    },
    "required": ["verified", "score", "feedback"],
}

ANALYSIS_UNAVAILABLE_WARNING = "AI analysis failed. You can still submit, but it might take longer to verify."
NO_WASTE_MESSAGE = "AI could not detect garbage in this image. Please upload a clearer photo."
NO_DEAD_ANIMAL_MESSAGE = "AI could not detect a dead animal in this image. Please upload a clearer photo."


def _first_json_block(text: str) -> str:
    """Extract the first JSON object block from free-form text."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return text


def _safe_json_loads(raw_text: str) -> Dict[str, Any]:
    """Parse JSON robustly, tolerating leading/trailing noise or code fences."""
    cleaned = raw_text.strip()
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*", "", cleaned).strip()
    cleaned = re.sub(r"```$", "", cleaned).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        block = _first_json_block(cleaned)
        return json.loads(block)


def _coerce_str(value: Any, field: str, required: bool = True) -> str | None:
    if value is None:
        if required:
            raise AIVisionError(f"Missing required field: {field}")
        return None
    text = str(value).strip()
    if required and not text:
        raise AIVisionError(f"Missing required field: {field}")
    return text


def _coerce_float(value: Any, field: str, lower: float, upper: float) -> float:
    if value is None or value == "":
        raise AIVisionError(f"Missing numeric field: {field}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise AIVisionError(f"Invalid numeric field: {field}")
    return min(max(number, lower), upper)


def _coerce_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if value in {"true", "True", "1", 1}:  # tolerant parsing
        return True
    if value in {"false", "False", "0", 0}:
        return False
    raise AIVisionError(f"Missing required field: {field}")


def _normalize_urgency(value: Any) -> str:
    urgency = Urgency.parse(value)
    if urgency is None:
        raise AIVisionError("AI service did not return a valid urgency level")
    return urgency.value


def normalize_waste_result(payload: Dict[str, Any]) -> Dict[str, Any]:
    is_waste = _coerce_bool(payload.get("isWaste"), "isWaste")
    return {
        "isWaste": is_waste,
        "wasteType": _coerce_str(payload.get("wasteType"), "wasteType", required=is_waste) or "",
        "urgency": _normalize_urgency(payload.get("urgency")),
        "confidence": _coerce_float(payload.get("confidence"), "confidence", 0.0, 1.0),
        "description": _coerce_str(payload.get("description"), "description", required=False) or "",
    }


def normalize_dead_animal_result(payload: Dict[str, Any]) -> Dict[str, Any]:
    result = {
        "isDeadAnimal": _coerce_bool(payload.get("isDeadAnimal"), "isDeadAnimal"),
        "urgency": _normalize_urgency(payload.get("urgency")),
        "confidence": _coerce_float(payload.get("confidence"), "confidence", 0.0, 1.0),
        "description": _coerce_str(payload.get("description"), "description", required=False) or "",
    }
    animal_type = _coerce_str(payload.get("animalType"), "animalType", required=False)
    if animal_type:
        result["animalType"] = animal_type
    return result


def normalize_cleanup_result(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "verified": _coerce_bool(payload.get("verified"), "verified"),
        "score": _coerce_float(payload.get("score"), "score", 0.0, 100.0),
        "feedback": _coerce_str(payload.get("feedback"), "feedback", required=False) or "",
    }


class AIGateway:
    """Capabilities the complaint workflow expects from an image/text model.

    Every method raises AIVisionError when the service is unreachable or its
    answer cannot be used; callers decide how to degrade.
    """

    def classify_waste(self, image: str) -> Dict[str, Any]:
        raise NotImplementedError

    def classify_dead_animal(self, image: str) -> Dict[str, Any]:
        raise NotImplementedError

    def verify_cleanup(self, before_image: str, after_image: str) -> Dict[str, Any]:
        raise NotImplementedError

    def converse(self, message: str, history: Iterable[Dict[str, Any]] | None = None) -> str:
        raise NotImplementedError


class GeminiGateway(AIGateway):
    def __init__(self, api_key: str, model: str = "gemini-2.5-flash", timeout_seconds: int = 30) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds

    def _client(self) -> genai.Client:
        if not self.api_key:
            raise AIVisionError("GEMINI_API_KEY is not configured")
        # HttpOptions.timeout is expressed in milliseconds.
        return genai.Client(
            api_key=self.api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
        )

    @staticmethod
    def _image_part(payload: str) -> types.Part:
        try:
            image_bytes, mime_type = decode_image_payload(payload)
        except ImagePayloadError as exc:
            raise AIVisionError(str(exc)) from exc
        return types.Part.from_bytes(data=image_bytes, mime_type=mime_type)

    @staticmethod
    def _response_text(response) -> str:
        raw_text = (getattr(response, "text", None) or "").strip()
        if not raw_text and getattr(response, "candidates", None):
            try:
                parts = response.candidates[0].content.parts or []
                raw_text = "".join(getattr(p, "text", "") or "" for p in parts).strip()
            except (AttributeError, IndexError, TypeError):
                raw_text = ""
        return raw_text

    def _generate(self, contents, config: types.GenerateContentConfig, action: str) -> str:
        client = self._client()
        current_app.logger.info("Dispatching Gemini request", extra={"action": action, "model": self.model})
        try:
            response = client.models.generate_content(model=self.model, contents=contents, config=config)
        except Exception as exc:  # pragma: no cover - relies on remote service
            current_app.logger.exception("Gemini request failed", extra={"action": action})
            raise AIVisionError("AI service request failed") from exc

        raw_text = self._response_text(response)
        if not raw_text:
            raise AIVisionError("AI service returned empty response")
        return raw_text

    def _generate_json(self, parts: List[types.Part], schema: Dict[str, Any], action: str) -> Dict[str, Any]:
        config = types.GenerateContentConfig(response_mime_type="application/json", response_schema=schema)
        raw_text = self._generate([types.Content(role="user", parts=parts)], config, action)
        try:
            payload = _safe_json_loads(raw_text)
        except ValueError as exc:
            raise AIVisionError("AI service returned non-JSON output") from exc
        if not isinstance(payload, dict):
            raise AIVisionError("AI service returned an unexpected JSON shape")
        return payload

    def classify_waste(self, image: str) -> Dict[str, Any]:
        parts = [types.Part.from_text(text=WASTE_PROMPT), self._image_part(image)]
        return normalize_waste_result(self._generate_json(parts, WASTE_SCHEMA, "classify_waste"))

    def classify_dead_animal(self, image: str) -> Dict[str, Any]:
        parts = [types.Part.from_text(text=DEAD_ANIMAL_PROMPT), self._image_part(image)]
        return normalize_dead_animal_result(self._generate_json(parts, DEAD_ANIMAL_SCHEMA, "classify_dead_animal"))

    def verify_cleanup(self, before_image: str, after_image: str) -> Dict[str, Any]:
        parts = [
            types.Part.from_text(text=CLEANUP_PROMPT),
            self._image_part(before_image),
            self._image_part(after_image),
        ]
        return normalize_cleanup_result(self._generate_json(parts, CLEANUP_SCHEMA, "verify_cleanup"))

    def converse(self, message: str, history: Iterable[Dict[str, Any]] | None = None) -> str:
        contents = build_conversation(message, history)
        config = types.GenerateContentConfig(system_instruction=ASSISTANT_INSTRUCTION)
        return self._generate(contents, config, "converse")


def build_conversation(message: str, history: Iterable[Dict[str, Any]] | None = None) -> List[types.Content]:
    """Turn client-held chat turns plus the new message into Gemini contents."""
    contents: List[types.Content] = []
    for turn in history or []:
        if not isinstance(turn, dict):
            continue
        text = str(turn.get("content") or turn.get("text") or "").strip()
        if not text:
            continue
        role = "user" if str(turn.get("role", "user")).lower() == "user" else "model"
        # Gemini expects the conversation to open with a user turn; skip greetings before it.
        if not contents and role == "model":
            continue
        contents.append(types.Content(role=role, parts=[types.Part.from_text(text=text)]))
    contents.append(types.Content(role="user", parts=[types.Part.from_text(text=message)]))
    return contents


def build_gateway(config) -> GeminiGateway:
    return GeminiGateway(
        api_key=config.get("GEMINI_API_KEY", ""),
        model=config.get("GEMINI_MODEL", "gemini-2.5-flash"),
        timeout_seconds=int(config.get("GEMINI_TIMEOUT_SECONDS", 30)),
    )


def get_gateway() -> AIGateway:
    return current_app.extensions["ai_gateway"]


def classify_report_image(gateway: AIGateway, complaint_type: str, image: str) -> Dict[str, Any]:
    """Run the classifier matching the report type and apply the soft-rejection policy.

    A failed call never raises: the caller gets ``available=False`` plus a
    warning and may still submit the report.
    """
    is_animal = complaint_type == ComplaintType.DEAD_ANIMAL.value
    try:
        if is_animal:
            analysis = gateway.classify_dead_animal(image)
        else:
            analysis = gateway.classify_waste(image)
    except AIVisionError as exc:
        current_app.logger.warning(
            "Image classification unavailable", extra={"complaint_type": complaint_type, "error": str(exc)}
        )
        return {"available": False, "accepted": None, "analysis": {}, "warning": ANALYSIS_UNAVAILABLE_WARNING}

    if is_animal:
        accepted = analysis["isDeadAnimal"]
        suggested = analysis.get("animalType")
    else:
        accepted = analysis["isWaste"]
        suggested = analysis.get("wasteType")

    result = {
        "available": True,
        "accepted": accepted,
        "analysis": analysis,
        "urgency": analysis["urgency"],
        "suggestedCategory": suggested or "General",
    }
    if not accepted:
        result["message"] = NO_DEAD_ANIMAL_MESSAGE if is_animal else NO_WASTE_MESSAGE
    return result
