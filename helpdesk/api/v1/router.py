from fastapi import APIRouter
from helpdesk.api.v1 import (
    tickets,
    attachments,
)

api_router = APIRouter()

api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
api_router.include_router(attachments.router, tags=["attachments"])
