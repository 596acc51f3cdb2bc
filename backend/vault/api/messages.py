# vault/api/messages.py

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from vault.api.deps import client_address, device_info, get_service
from vault.core.errors import MalformedInput, NotFound, StoreError
from vault.core.message import MessageService
from vault.core.rate_limit import CREATE_MESSAGE_LIMIT, limiter

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateMessageSchema(BaseModel):
    type: Literal["text", "file"]
    content: str = ""
    userId: str
    name: Optional[str] = None
    url: Optional[str] = None


def _store_failure(action: str, e: Exception) -> HTTPException:
    logger.error(f"{action} failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail="Internal Server Error")


@router.post("/messages", status_code=201)
@limiter.limit(CREATE_MESSAGE_LIMIT)
def create_message(
    request: Request,
    payload: CreateMessageSchema,
    service: MessageService = Depends(get_service),
):
    try:
        return service.create(
            payload.model_dump(exclude_none=True),
            device_info=device_info(request),
            base_url=str(request.base_url),
        )
    except MalformedInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise _store_failure("Create message", e)


@router.get("/messages")
def list_messages(userId: Optional[str] = None, service: MessageService = Depends(get_service)):
    try:
        return service.list(userId)
    except StoreError as e:
        raise _store_failure("List messages", e)


@router.get("/messages/{message_id}")
def get_message(message_id: str, service: MessageService = Depends(get_service)):
    try:
        return service.fetch(message_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="Not Found")
    except StoreError as e:
        raise _store_failure("Get message", e)


@router.get("/shared/{message_id}")
@router.get("/messages/{message_id}/download")
def download_message(message_id: str, service: MessageService = Depends(get_service)):
    """One-time access: a file message is deleted once its payload is returned"""
    try:
        return service.consume(message_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="File not found. It may have been deleted or the link is incorrect.")
    except StoreError as e:
        raise _store_failure("Download", e)


@router.delete("/messages/{message_id}")
def delete_message(message_id: str, service: MessageService = Depends(get_service)):
    try:
        service.delete(message_id)
        return {"message": "Message deleted"}
    except NotFound:
        # Deleting twice is a benign race
        raise HTTPException(status_code=404, detail="Message not found")
    except StoreError as e:
        raise _store_failure("Delete message", e)


@router.post("/messages/{message_id}/seen")
def mark_message_seen(
    message_id: str,
    request: Request,
    service: MessageService = Depends(get_service),
):
    try:
        service.mark_seen(message_id, client_address(request))
        return {"message": "Seen status updated"}
    except NotFound:
        raise HTTPException(status_code=404, detail="Not Found")
    except StoreError as e:
        raise _store_failure("Mark seen", e)
