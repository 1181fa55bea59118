# caltrack/models.py
from enum import Enum
from typing import Optional, List
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel
from uuid import UUID, uuid4
from sqlalchemy import Column, JSON, DateTime


class MessageKind(str, Enum):
    """
    What a message means to the meal pipeline.

        trigger input                         pipeline appends
        IMAGE with url                        DESCRIPTION, then CONFIRMATION
        IMAGE, fetch or inference failed      PLAIN_TEXT fallback
        user PLAIN_TEXT "Yes" after a
          CONFIRMATION                        Meal record + PLAIN_TEXT summary
        anything else                         nothing
    """
    IMAGE = "image"
    DESCRIPTION = "description"
    CONFIRMATION = "confirmation"
    PLAIN_TEXT = "plain_text"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


ROLES = ("user", "assistant")
MESSAGE_TYPES = ("text", "image", "confirmation")


class Conversation(SQLModel, table=True):
    __tablename__ = "conversation"
    # One conversation per user: the id is the user id
    id: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))


class Message(SQLModel, table=True):
    __tablename__ = "message"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    conversation_id: str = Field(foreign_key="conversation.id", index=True)
    role: str
    type: str = Field(default="text")
    text: str = Field(default="")
    # Assigned by the store on append
    timestamp: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), index=True))

    image_url: Optional[str] = None

    # Description / confirmation payload
    food_description: Optional[str] = None
    food_items: Optional[List[str]] = Field(default=None, sa_column=Column(JSON))
    estimated_calories: Optional[int] = None
    confidence_score: Optional[float] = None
    linked_vision_message_id: Optional[UUID] = None
    linked_image_message_id: Optional[UUID] = None

    # Meal summary payload
    macros: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    meal_logged: Optional[bool] = None
    meal_id: Optional[UUID] = None

    def kind(self) -> MessageKind:
        if self.type == "image":
            return MessageKind.IMAGE
        if self.type == "confirmation":
            return MessageKind.CONFIRMATION
        if self.role == "assistant" and self.food_items is not None:
            return MessageKind.DESCRIPTION
        return MessageKind.PLAIN_TEXT


class Meal(SQLModel, table=True):
    __tablename__ = "meal"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: str = Field(index=True)
    conversation_id: str = Field(foreign_key="conversation.id")
    image_message_id: Optional[UUID] = None
    vision_message_id: Optional[UUID] = None

    food_items: List[str] = Field(default=[], sa_column=Column(JSON))
    estimated_calories: int = Field(default=0)
    macros: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))


class TriggerRun(SQLModel, table=True):
    __tablename__ = "trigger_run"
    # "<trigger>:<message id>"
    key: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False))
