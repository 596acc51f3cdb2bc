# vault/api/admin.py

from fastapi import APIRouter, Depends, HTTPException

from vault.api.deps import get_registry, get_store
from vault.core.errors import StoreError
from vault.infra.log_store import LogStore
from vault.services.subscriber_registry import SubscriberRegistry

router = APIRouter(prefix="/admin")


@router.get("/stats")
def stats(
    store: LogStore = Depends(get_store),
    registry: SubscriberRegistry = Depends(get_registry),
):
    """Counts for the admin dashboard"""
    try:
        return {
            "users": store.count_users(),
            "messages": store.count_messages(),
            "subscribers": len(registry),
        }
    except StoreError as e:
        raise HTTPException(status_code=500, detail=str(e))
