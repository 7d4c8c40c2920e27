# API Key API - per-user LLM provider keys
#
# - Save (encrypt + upsert)
# - Get (masked key only, plaintext never leaves the server)
# - Delete
# All endpoints require the session token and a caller user id.

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..core import get_settings
from ..vault import ApiKeyStore, CredentialCodec, EnvelopeError
from ..vault.encryption import UNPROCESSABLE_MESSAGE
from .security import current_user_id, verify_session_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/api-key", tags=["api-key"])

# Lazily created from settings; tests inject their own via set_store()
_store: Optional[ApiKeyStore] = None


def get_store() -> ApiKeyStore:
    """Get the process-wide API key store (created on first use)."""
    global _store
    if _store is None:
        settings = get_settings()
        codec = CredentialCodec(settings.secret, settings.cipher_suite)
        _store = ApiKeyStore(codec, db_path=settings.db_path)
    return _store


def set_store(store: Optional[ApiKeyStore]):
    global _store
    _store = store


# Request/Response Models
class SaveApiKeyRequest(BaseModel):
    api_key: str = Field(..., min_length=1)
    key_type: str = Field("openai", pattern="^(openai|anthropic)$")


class ApiKeyInfoResponse(BaseModel):
    has_key: bool
    key_type: Optional[str] = None
    masked_key: Optional[str] = None


# Endpoints

@router.get("", response_model=ApiKeyInfoResponse)
async def get_api_key(
    user_id: int = Depends(current_user_id),
    token: str = Depends(verify_session_token)
):
    """
    Get the caller's stored key: whether one exists, its type, and a masked form.

    A stored value that cannot be decrypted yields 500 with a single generic
    message, whatever the underlying reason.
    """
    store = get_store()
    try:
        # PBKDF2 is CPU-bound; keep it off the event loop
        info = await asyncio.to_thread(store.get_api_key_info, user_id)
    except EnvelopeError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=UNPROCESSABLE_MESSAGE
        ) from None

    return ApiKeyInfoResponse(**info.to_dict())


@router.post("")
async def save_api_key(
    request: SaveApiKeyRequest,
    user_id: int = Depends(current_user_id),
    token: str = Depends(verify_session_token)
):
    """Encrypt and store the caller's API key, replacing any previous one."""
    store = get_store()
    try:
        await asyncio.to_thread(store.save_api_key, user_id, request.api_key, request.key_type)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        ) from None

    return {"success": True}


@router.delete("")
async def delete_api_key(
    user_id: int = Depends(current_user_id),
    token: str = Depends(verify_session_token)
):
    """Delete the caller's API key. Succeeds whether or not one was stored."""
    await asyncio.to_thread(get_store().delete_api_key, user_id)
    return {"success": True}
