# caltrack/main.py
import os
from contextlib import asynccontextmanager
from uuid import UUID
from fastapi import FastAPI, Form, Depends, HTTPException, Security, BackgroundTasks
from fastapi.security import APIKeyHeader
from sqlmodel import Session
from . import database
from .database import init_db, get_session
from .models import ROLES, MESSAGE_TYPES
from .store import get_or_create_conversation, append_message, get_message, clear_conversation
from .orchestrator import (
    on_image_message_created, on_message_created, get_chat_history, get_meal_history, message_to_dict
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield

app = FastAPI(lifespan=lifespan)

# --- Security Configuration ---
API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=True)

def get_api_key(api_key: str = Security(api_key_header)):
    """
    Validates the shared API key sent by the client app.
    """
    server_key = os.getenv("API_KEY")
    if server_key and api_key != server_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API Key"
        )
    return api_key
# ------------------------------

# --- Triggers ---
# Each runs in its own session, independently of the other.

async def run_image_trigger(message_id: UUID):
    with Session(database.engine) as session:
        message = get_message(session, message_id)
        if message:
            await on_image_message_created(session, message)

def run_confirmation_trigger(message_id: UUID):
    with Session(database.engine) as session:
        message = get_message(session, message_id)
        if message:
            on_message_created(session, message)
# ------------------------------

@app.get("/api/conversations/{user_id}", dependencies=[Depends(get_api_key)])
def conversation_endpoint(user_id: str, session: Session = Depends(get_session)):
    conversation = get_or_create_conversation(session, user_id)
    return {
        "id": conversation.id,
        "createdAt": conversation.created_at,
        "updatedAt": conversation.updated_at,
    }

@app.post("/api/conversations/{user_id}/messages", dependencies=[Depends(get_api_key)])
def post_message_endpoint(
    user_id: str,
    background_tasks: BackgroundTasks,
    text: str = Form(""),
    type: str = Form("text"),
    role: str = Form("user"),
    image_url: str = Form(None),
    session: Session = Depends(get_session)
):
    if role not in ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role: {role}")
    if type not in MESSAGE_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid message type: {type}")

    print(f"\n📨 [NEW MSG] User: {user_id} | Role: {role} | Type: {type} | Text: {text} | Img: {image_url}")
    message = append_message(session, user_id, role, type, text, image_url=image_url)

    background_tasks.add_task(run_image_trigger, message.id)
    background_tasks.add_task(run_confirmation_trigger, message.id)
    return message_to_dict(message)

@app.get("/api/conversations/{user_id}/messages", dependencies=[Depends(get_api_key)])
def chat_history_endpoint(user_id: str, session: Session = Depends(get_session)):
    return get_chat_history(session, user_id)

@app.get("/api/conversations/{user_id}/messages/{message_id}", dependencies=[Depends(get_api_key)])
def message_endpoint(user_id: str, message_id: str, session: Session = Depends(get_session)):
    try:
        uuid_obj = UUID(message_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid UUID")
    message = get_message(session, uuid_obj)
    if not message or message.conversation_id != user_id:
        raise HTTPException(status_code=404, detail="Message not found")
    return message_to_dict(message)

@app.delete("/api/conversations/{user_id}/messages", dependencies=[Depends(get_api_key)])
def clear_conversation_endpoint(user_id: str, session: Session = Depends(get_session)):
    deleted = clear_conversation(session, user_id)
    return {"status": "cleared", "deleted": deleted}

@app.get("/api/meals/{user_id}", dependencies=[Depends(get_api_key)])
def meal_history_endpoint(user_id: str, session: Session = Depends(get_session)):
    return get_meal_history(session, user_id)
