# caltrack/ai_engine.py
import os
import asyncio
import base64
import time
from typing import Optional
from openai import OpenAI
from dotenv import load_dotenv

load_dotenv()

MODEL_ID = os.getenv("MODEL_ID", "google/gemini-2.5-flash")
VISION_BASE_URL = os.getenv("VISION_BASE_URL", "https://openrouter.ai/api/v1")
VISION_TIMEOUT = float(os.getenv("VISION_TIMEOUT", "60"))
SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")
APP_NAME = os.getenv("APP_NAME", "Cal-Tracking")

# parse_vision_response() relies on this two-line shape
VISION_PROMPT = """Look at this image of a meal or food.
1. List the foods you see in a short comma-separated list. Only list food items, nothing else. Example: chicken, rice, broccoli.
2. On the next line, estimate the total calories for the whole meal and write exactly: Estimated total calories: N
where N is a single number (e.g. 450 or 650). Base the estimate on typical portion sizes for the foods shown."""


def get_vision_api_key() -> Optional[str]:
    return os.getenv("OPENROUTER_API_KEY")


def _get_client(api_key: str) -> OpenAI:
    return OpenAI(
        base_url=VISION_BASE_URL,
        api_key=api_key,
        timeout=VISION_TIMEOUT,
        max_retries=0,
        default_headers={
            "HTTP-Referer": SITE_URL,
            "X-Title": APP_NAME,
        }
    )


async def analyze_meal_image(image_bytes: bytes, api_key: Optional[str]) -> Optional[str]:
    """
    Ask the vision model to describe the meal in `image_bytes` (JPEG).
    Returns the raw reply text, or None when there is no usable answer.
    """
    if not api_key:
        print("⚠️ Vision call skipped: no API key configured")
        return None

    base64_image = base64.b64encode(image_bytes).decode('utf-8')
    image_url = f"data:image/jpeg;base64,{base64_image}"

    print(f"🚀 Sending request to vision model ({MODEL_ID})... [{len(image_bytes)}b]")
    start_time = time.time()

    try:
        # The SDK client is synchronous; keep it off the event loop
        response = await asyncio.to_thread(
            _get_client(api_key).chat.completions.create,
            model=MODEL_ID,
            messages=[
                {"role": "user", "content": [
                    {"type": "text", "text": VISION_PROMPT},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ]}
            ],
            temperature=0.2,
            max_tokens=300,
        )
    except Exception as e:
        print(f"❌ Vision API Error: {str(e)}")
        return None

    latency = time.time() - start_time
    text = _extract_text(response)
    if not text:
        print(f"⚠️ Vision reply had no text ({latency:.2f}s): {_describe_empty(response)}")
        return None

    print(f"✅ Vision reply in {latency:.2f}s")
    return text


def _extract_text(response) -> Optional[str]:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    choice = choices[0]
    if choice.finish_reason == "content_filter":
        return None
    message = getattr(choice, "message", None)
    content = getattr(message, "content", None) if message else None
    if not content:
        return None
    return content.strip() or None


def _describe_empty(response) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return "no choices"
    return f"finish_reason={choices[0].finish_reason}"
