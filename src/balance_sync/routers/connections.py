"""Connection routes: link, import, unlink and status of account sources."""
import logging

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from balance_sync.db import Provider
from balance_sync.deps import ConnectionsDep, CurrentUser, ProviderParam
from balance_sync.providers.core import BalanceSyncError, ProviderErrorMapper
from balance_sync.schemas import ApiKeyPayload, ConnectionStatus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/connections", tags=["connections"])


class GeminiConnectRequest(BaseModel):
    """API key pair entered by the user."""

    api_key: str = Field(min_length=1)
    api_secret: str = Field(min_length=1)


class ActionResponse(BaseModel):
    success: bool = True
    message: str


class LedgerImportResponse(ActionResponse):
    filename: str
    balances: dict[str, float]


@router.get("/status", response_model=ConnectionStatus)
async def get_status(user_id: CurrentUser, connections: ConnectionsDep) -> ConnectionStatus:
    """Connection state of every provider for the current user."""
    try:
        return connections.status(user_id)
    except BalanceSyncError as exc:
        ProviderErrorMapper().raise_http(exc)


@router.post("/gemini", response_model=ActionResponse)
async def connect_gemini(
    body: GeminiConnectRequest,
    user_id: CurrentUser,
    connections: ConnectionsDep,
) -> ActionResponse:
    """Test the key pair against Gemini, store it and start a balance sync."""
    payload = ApiKeyPayload(api_key=body.api_key, api_secret=body.api_secret)
    try:
        await connections.connect(user_id, Provider.GEMINI, payload)
    except BalanceSyncError as exc:
        ProviderErrorMapper(api_name="gemini").raise_http(exc)
    return ActionResponse(message="Gemini account connected successfully")


@router.get("/coinbase/callback", response_model=ActionResponse)
async def coinbase_callback(
    user_id: CurrentUser,
    connections: ConnectionsDep,
    code: str | None = None,
) -> ActionResponse:
    """OAuth redirect target: exchange the code and store the tokens."""
    if not code:
        raise HTTPException(400, detail={"error": "missing_code"})
    try:
        await connections.connect_oauth(user_id, Provider.COINBASE, code)
    except BalanceSyncError as exc:
        ProviderErrorMapper(api_name="coinbase").raise_http(exc)
    return ActionResponse(message="Coinbase account connected successfully")


@router.post("/ledger", response_model=LedgerImportResponse)
async def upload_ledger(
    user_id: CurrentUser,
    connections: ConnectionsDep,
    file: UploadFile = File(...),
) -> LedgerImportResponse:
    """Import a Ledger Live CSV export."""
    filename = file.filename or ""
    if not filename.lower().endswith(".csv"):
        raise HTTPException(400, detail={"error": "File must be a CSV"})
    text = (await file.read()).decode("utf-8-sig", errors="replace")
    if not text.strip():
        raise HTTPException(400, detail={"error": "File is empty"})
    try:
        totals = connections.import_file(user_id, filename, text)
    except BalanceSyncError as exc:
        ProviderErrorMapper(api_name="ledger").raise_http(exc)
    return LedgerImportResponse(
        message=f'Ledger Live file "{filename}" uploaded successfully!',
        filename=filename,
        balances=totals,
    )


@router.delete("/{provider}", response_model=ActionResponse)
async def unlink(
    provider: ProviderParam,
    user_id: CurrentUser,
    connections: ConnectionsDep,
) -> ActionResponse:
    """Unlink a provider and delete its balances."""
    try:
        connections.unlink(user_id, provider)
    except BalanceSyncError as exc:
        ProviderErrorMapper(api_name=provider.value).raise_http(exc)
    return ActionResponse(message=f"{provider.value.capitalize()} account unlinked successfully")


@router.delete("", response_model=ActionResponse)
async def delete_account_data(user_id: CurrentUser, connections: ConnectionsDep) -> ActionResponse:
    """Delete every connection and balance of the current user."""
    try:
        connections.delete_account_data(user_id)
    except BalanceSyncError as exc:
        ProviderErrorMapper().raise_http(exc)
    return ActionResponse(message="Account data deleted successfully")
