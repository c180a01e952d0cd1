"""Spreadsheet export route."""
from fastapi import APIRouter, Response

from balance_sync.deps import CurrentUser, ExportDep
from balance_sync.providers.core import BalanceSyncError, ProviderErrorMapper
from balance_sync.services.export import XLSX_MEDIA_TYPE

router = APIRouter(prefix="/export", tags=["export"])


@router.get("")
async def export_balances(user_id: CurrentUser, export: ExportDep) -> Response:
    """Download the balance sheet as .xlsx."""
    try:
        filename, content = await export.export(user_id)
    except BalanceSyncError as exc:
        ProviderErrorMapper().raise_http(exc)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
