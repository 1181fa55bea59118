# caltrack/orchestrator.py
import asyncio
from collections import defaultdict
from typing import Optional
from sqlmodel import Session
from .models import Message, Meal, MessageKind
from .store import append_message, previous_message, create_meal, claim_trigger, list_messages, list_meals
from .image_normalizer import normalize_image
from .ai_engine import analyze_meal_image, get_vision_api_key
from .vision_parser import parse_vision_response
from .nutrition import estimate_macros

# Fixed until the model reports its own confidence
CONFIDENCE_SCORE = 0.85

# Exact, case-sensitive match
CONFIRMATION_REPLY = "Yes"

CONFIRMATION_PROMPT = "Does this description match your meal?"
IMAGE_FAILED_TEXT = "I couldn’t process that image. Please try another photo."
ANALYSIS_FAILED_TEXT = "I couldn’t analyze the image right now. Please try again."

IMAGE_TRIGGER = "image-ingestion"
CONFIRMATION_TRIGGER = "meal-confirmation"


async def on_image_message_created(session: Session, message: Message):
    """
    Image ingestion: normalize -> vision model -> parse, then append a
    description message and a confirmation message that points back at it.
    Returns the messages appended.
    """
    if message.kind() is not MessageKind.IMAGE or not message.image_url:
        return []

    conversation_id = message.conversation_id
    if not claim_trigger(session, IMAGE_TRIGGER, message.id):
        print(f"⏭️ [IMAGE] Already processed {message.id}, skipping")
        return []

    print(f"\n📸 [IMAGE] Conversation: {conversation_id} | Msg: {message.id} | Url: {message.image_url}")

    # 1. Normalize
    # Blocking fetch runs off the event loop
    resized = await asyncio.to_thread(normalize_image, message.image_url)
    if not resized:
        return [append_message(session, conversation_id, "assistant", "text", IMAGE_FAILED_TEXT)]

    # 2. Inference
    description = await analyze_meal_image(resized["data"], get_vision_api_key())
    if not description:
        return [append_message(session, conversation_id, "assistant", "text", ANALYSIS_FAILED_TEXT)]

    # 3. Parse
    parsed = parse_vision_response(description)
    food_items = parsed["food_items"]
    estimated_calories = parsed["estimated_calories"]
    print(f"   🤖 Vision: {description[:100]!r} | Foods: {len(food_items)} | Calories: {estimated_calories}")

    # 4. Description
    vision_msg = append_message(
        session, conversation_id, "assistant", "text",
        _describe_meal(description, food_items, estimated_calories),
        food_description=description,
        food_items=food_items,
        estimated_calories=estimated_calories,
        confidence_score=CONFIDENCE_SCORE,
    )

    # 5. Confirmation (separate write: a crash here leaves the description unconfirmed)
    confirmation_msg = append_message(
        session, conversation_id, "assistant", "confirmation", CONFIRMATION_PROMPT,
        linked_vision_message_id=vision_msg.id,
        linked_image_message_id=message.id,
        food_items=food_items,
        estimated_calories=estimated_calories,
    )
    return [vision_msg, confirmation_msg]


def on_message_created(session: Session, message: Message) -> Optional[Meal]:
    """
    Meal confirmation: a user "Yes" directly after a confirmation prompt logs
    the meal and appends a summary. Returns the new meal, if any.

    Only the nearest preceding message is considered, so with two prompts
    pending only the latest can ever be confirmed.
    """
    if message.role != "user" or (message.text or "").strip() != CONFIRMATION_REPLY:
        return None

    conversation_id = message.conversation_id
    if message.timestamp is None:
        print(f"⚠️ [CONFIRM] Yes message {message.id} has no timestamp")
        return None

    if not claim_trigger(session, CONFIRMATION_TRIGGER, message.id):
        print(f"⏭️ [CONFIRM] Already processed {message.id}, skipping")
        return None

    prompt = previous_message(session, conversation_id, message.timestamp)
    if prompt is None:
        print(f"⚠️ [CONFIRM] No message before {message.id} in {conversation_id}")
        return None
    if prompt.kind() is not MessageKind.CONFIRMATION:
        print(f"⚠️ [CONFIRM] Yes in {conversation_id} does not answer a confirmation (previous: {prompt.type})")
        return None

    calories = prompt.estimated_calories or 0
    macros = estimate_macros(calories) if calories > 0 else None

    meal = create_meal(
        session,
        user_id=conversation_id,
        conversation_id=conversation_id,
        image_message_id=prompt.linked_image_message_id,
        vision_message_id=prompt.linked_vision_message_id,
        food_items=list(prompt.food_items or []),
        estimated_calories=calories,
        macros=macros,
    )

    append_message(
        session, conversation_id, "assistant", "text",
        _summarize_meal(calories, macros),
        meal_logged=True,
        meal_id=meal.id,
        estimated_calories=calories,
        macros=macros,
    )
    print(f"✅ [CONFIRM] Meal logged | Conversation: {conversation_id} | Meal: {meal.id} | {calories} kcal")
    return meal


def get_chat_history(session: Session, conversation_id: str):
    return [message_to_dict(msg) for msg in list_messages(session, conversation_id)]


def get_meal_history(session: Session, user_id: str):
    history_map = defaultdict(lambda: {
        "date": "",
        "totals": {"calories": 0, "protein": 0, "carbs": 0, "fat": 0},
        "meals": []
    })

    for meal in list_meals(session, user_id):
        date_key = meal.created_at.strftime("%Y-%m-%d")
        day_entry = history_map[date_key]
        day_entry["date"] = date_key

        macros = meal.macros or {}
        day_entry["totals"]["calories"] += meal.estimated_calories
        day_entry["totals"]["protein"] += macros.get("protein", 0)
        day_entry["totals"]["carbs"] += macros.get("carbs", 0)
        day_entry["totals"]["fat"] += macros.get("fat", 0)

        day_entry["meals"].append(meal_to_dict(meal))

    result = list(history_map.values())
    result.sort(key=lambda x: x["date"], reverse=True)
    return result


def message_to_dict(msg: Message):
    data = {
        "id": str(msg.id),
        "role": msg.role,
        "type": msg.type,
        "text": msg.text,
        "timestamp": msg.timestamp,
    }
    optional = {
        "imageUrl": msg.image_url,
        "foodDescription": msg.food_description,
        "foodItems": msg.food_items,
        "estimatedCalories": msg.estimated_calories,
        "confidenceScore": msg.confidence_score,
        "linkedVisionMessageId": _str_or_none(msg.linked_vision_message_id),
        "linkedImageMessageId": _str_or_none(msg.linked_image_message_id),
        "macros": msg.macros,
        "mealLogged": msg.meal_logged,
        "mealId": _str_or_none(msg.meal_id),
    }
    data.update({k: v for k, v in optional.items() if v is not None})
    return data


def meal_to_dict(meal: Meal):
    return {
        "id": str(meal.id),
        "userId": meal.user_id,
        "conversationId": meal.conversation_id,
        "imageMessageId": _str_or_none(meal.image_message_id),
        "visionMessageId": _str_or_none(meal.vision_message_id),
        "foodItems": meal.food_items,
        "estimatedCalories": meal.estimated_calories,
        "macros": meal.macros,
        "createdAt": meal.created_at,
        "time": meal.created_at.strftime("%H:%M"),
    }


def _describe_meal(description: str, food_items, estimated_calories: Optional[int]) -> str:
    parts = [f"I see: {', '.join(food_items)}." if food_items else description]
    if estimated_calories is not None:
        parts.append(f"Estimated calories for this meal: {estimated_calories}")
    return " ".join(parts)


def _summarize_meal(calories: int, macros: Optional[dict]) -> str:
    parts = ["Meal logged."]
    if calories > 0:
        parts.append(f"{calories} calories")
    if macros:
        parts.append(f"(P {macros['protein']}g · C {macros['carbs']}g · F {macros['fat']}g)")
    return " ".join(parts)


def _str_or_none(value):
    return str(value) if value is not None else None
