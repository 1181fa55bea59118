# caltrack/store.py
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
import traceback

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .models import Conversation, Message, Meal, TriggerRun, utc_now


def get_or_create_conversation(session: Session, conversation_id: str) -> Conversation:
    conversation = session.get(Conversation, conversation_id)
    if not conversation:
        conversation = Conversation(id=conversation_id)
        session.add(conversation)
        session.commit()
        session.refresh(conversation)
    return conversation


def append_message(session: Session, conversation_id: str, role: str, type: str = "text", text: str = "", **fields) -> Message:
    """
    Append a message to the conversation log with a server-assigned timestamp.
    Timestamps are strictly increasing within one conversation.
    """
    conversation = get_or_create_conversation(session, conversation_id)
    timestamp = _next_timestamp(session, conversation_id)

    msg = Message(conversation_id=conversation_id, role=role, type=type, text=text, timestamp=timestamp, **fields)
    conversation.updated_at = timestamp
    session.add(msg)
    session.add(conversation)
    session.commit()
    session.refresh(msg)
    return msg


def get_message(session: Session, message_id: UUID) -> Optional[Message]:
    return session.get(Message, message_id)


def previous_message(session: Session, conversation_id: str, before: datetime) -> Optional[Message]:
    """Most recent message strictly earlier than `before`."""
    return session.exec(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .where(Message.timestamp < as_utc(before))
        .order_by(Message.timestamp.desc())
        .limit(1)
    ).first()


def list_messages(session: Session, conversation_id: str):
    return session.exec(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.timestamp)
    ).all()


def create_meal(session: Session, **fields) -> Meal:
    meal = Meal(**fields)
    session.add(meal)
    session.commit()
    session.refresh(meal)
    return meal


def list_meals(session: Session, user_id: str):
    return session.exec(select(Meal).where(Meal.user_id == user_id).order_by(Meal.created_at.desc())).all()


def clear_conversation(session: Session, conversation_id: str) -> int:
    """Delete every message in the conversation. Meals are kept."""
    try:
        messages = session.exec(select(Message).where(Message.conversation_id == conversation_id)).all()
        for msg in messages:
            session.delete(msg)
        session.commit()
        print(f"🗑️ Cleared {len(messages)} messages from conversation {conversation_id}")
        return len(messages)
    except Exception as e:
        print(f"❌ Clear failed: {str(e)}")
        traceback.print_exc()
        session.rollback()
        raise


def claim_trigger(session: Session, trigger: str, message_id: UUID) -> bool:
    """
    Record that `trigger` has handled `message_id`.
    Returns False if it already had, i.e. the creation event was redelivered.
    """
    key = f"{trigger}:{message_id}"
    if session.get(TriggerRun, key):
        return False
    session.add(TriggerRun(key=key))
    try:
        session.commit()
    except IntegrityError:
        # Lost the race against a concurrent delivery
        session.rollback()
        return False
    return True


def _next_timestamp(session: Session, conversation_id: str) -> datetime:
    now = utc_now()
    latest = session.exec(
        select(func.max(Message.timestamp)).where(Message.conversation_id == conversation_id)
    ).one()
    if latest is not None:
        latest = as_utc(latest)
        if now <= latest:
            now = latest + timedelta(microseconds=1)
    return now


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
