# backend/fitchain/integrations/food_recognition.py
"""
Food photo analysis through the Gemini ``generateContent`` REST endpoint.

Nutrition tracking favours availability: when the model cannot be reached or
its answer cannot be parsed, ``analyze`` returns a placeholder result flagged
with ``is_placeholder`` instead of raising.
"""
import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import requests

from ..errors import UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")
JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

# first attempt, then one retry with the alternate encoding
ENCODINGS = ((".jpg", "image/jpeg"), (".png", "image/png"))

NUTRIENT_KEYS = ("protein", "carbohydrates", "fat", "fiber", "sugar", "sodium")

ANALYSIS_PROMPT = """Analyze this food image and provide a nutritional breakdown.
Give the most conservative calorie estimate you can justify.

Respond with a JSON object with exactly this structure:
{
  "foods": [
    {
      "food_name": "specific food name",
      "estimated_weight_grams": number,
      "total_calories": number,
      "protein": number,
      "carbohydrates": number,
      "fat": number,
      "fiber": number,
      "sugar": number,
      "sodium": number,
      "confidence": number,
      "serving_size": "description of portion"
    }
  ],
  "total_calories": number,
  "analysis_confidence": number,
  "general_notes": "overall analysis notes"
}"""


def placeholder_analysis(reason: str) -> Dict[str, Any]:
    return {
        "food_name": "Unidentified meal",
        "calories": 0,
        "confidence": 0,
        "nutrients": {key: 0 for key in NUTRIENT_KEYS},
        "foods": [],
        "notes": reason,
        "is_placeholder": True,
    }


def decode_image(image_b64: str) -> bytes:
    """Base64 (optionally a data URL) -> raw image bytes. Raises ValidationError."""
    if not image_b64:
        raise ValidationError("image is required")
    try:
        raw = base64.b64decode(DATA_URL_PREFIX.sub("", image_b64.strip()), validate=True)
    except (ValueError, TypeError):
        raise ValidationError("Invalid image")
    image_from_bytes(raw)
    return raw


def image_from_bytes(raw: bytes) -> np.ndarray:
    if not raw:
        raise ValidationError("Invalid image")
    try:
        bgr = cv2.imdecode(np.frombuffer(raw, np.uint8), cv2.IMREAD_COLOR)
    except cv2.error:
        bgr = None
    if bgr is None:
        raise ValidationError("Invalid image")
    return bgr


def downscale(bgr: np.ndarray, max_side: int) -> np.ndarray:
    h, w = bgr.shape[:2]
    longest = max(h, w)
    if longest <= max_side:
        return bgr
    scale = max_side / float(longest)
    return cv2.resize(bgr, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)


def _to_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def normalize_analysis(data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten the model's per-food answer into one entry-sized result."""
    if not isinstance(data, dict):
        raise UpstreamFailure("analysis is not a JSON object")
    foods: List[Dict[str, Any]] = data.get("foods") or []
    if not isinstance(foods, list) or not foods:
        raise UpstreamFailure("analysis contained no foods")
    if not all(isinstance(f, dict) for f in foods):
        raise UpstreamFailure("analysis foods must be objects")

    total = data.get("total_calories")
    calories = _to_number(total) if total is not None else sum(
        _to_number(f.get("total_calories")) for f in foods
    )
    confidence = data.get("analysis_confidence")
    if confidence is None:
        confidence = sum(_to_number(f.get("confidence")) for f in foods) / len(foods)

    return {
        "food_name": ", ".join(str(f.get("food_name") or "food") for f in foods),
        "calories": int(round(calories)),
        "confidence": int(round(_to_number(confidence))),
        "nutrients": {
            key: round(sum(_to_number(f.get(key)) for f in foods), 1) for key in NUTRIENT_KEYS
        },
        "foods": foods,
        "notes": data.get("general_notes"),
        "is_placeholder": False,
    }


class FoodRecognitionService:
    def analyze(self, image_bytes: bytes) -> Dict[str, Any]:
        raise NotImplementedError


class GeminiFoodRecognizer(FoodRecognitionService):
    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 20.0,
        max_side: int = 1024,
        session=None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_side = max_side
        self.session = session or requests.Session()

    def _generate(self, encoded: bytes, mime_type: str) -> Dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [
                {
                    "parts": [
                        {"text": ANALYSIS_PROMPT},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(encoded).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }

        try:
            response = self.session.post(
                url, params={"key": self.api_key}, json=body, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
            text = payload["candidates"][0]["content"]["parts"][0]["text"]
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamFailure(f"food recognition request failed: {e}")

        match = JSON_BLOCK.search(text or "")
        if not match:
            raise UpstreamFailure("no JSON found in food recognition response")
        try:
            return normalize_analysis(json.loads(match.group(0)))
        except ValueError as e:
            raise UpstreamFailure(f"unparseable food recognition response: {e}")

    def analyze(self, image_bytes: bytes) -> Dict[str, Any]:
        if not self.api_key:
            logger.warning("GEMINI_API_KEY is not configured, returning placeholder")
            return placeholder_analysis("Food recognition is not configured")

        image = downscale(image_from_bytes(image_bytes), self.max_side)

        last_error: Optional[Exception] = None
        for ext, mime_type in ENCODINGS:
            ok, buf = cv2.imencode(ext, image)
            if not ok:
                continue
            try:
                return self._generate(buf.tobytes(), mime_type)
            except UpstreamFailure as e:
                logger.warning("food recognition failed with %s: %s", mime_type, e)
                last_error = e

        return placeholder_analysis(
            "Automatic analysis is unavailable right now, please review the values"
            if last_error
            else "Image could not be encoded"
        )
