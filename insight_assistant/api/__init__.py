"""API router for the assistant endpoints."""

from fastapi import APIRouter

from insight_assistant.api import chat, search

router = APIRouter()

router.include_router(chat.router, tags=["chat"])
router.include_router(search.router, tags=["search"])
