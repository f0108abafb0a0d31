"""
Admin settings endpoints.

Capacity limits, contact details and credentials live on the ledger; every
write here is a confirmed ledger command. The export endpoint returns the
election report as a zip archive of CSV tables.
"""

from datetime import date

import structlog
from fastapi import APIRouter
from fastapi.responses import Response

from api.deps import AdminWorkspace, CurrentWorkspace
from schemas.admin import AdminContact, AdminCredentials, CapacityLimits, CommandResult
from services.report_exporter import collect_export, export_filename, to_csv_archive

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/limits", response_model=CapacityLimits)
async def get_limits(workspace: AdminWorkspace) -> CapacityLimits:
    return await workspace.ledger.get_capacity_limits()


@router.put("/limits", response_model=CommandResult)
async def set_limits(limits: CapacityLimits, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.set_capacity_limits(limits)


@router.get("/contact", response_model=AdminContact)
async def get_contact(workspace: CurrentWorkspace) -> AdminContact:
    """Admin contact details, visible to every signed-in identity."""
    return await workspace.ledger.get_admin_contact()


@router.put("/contact", response_model=CommandResult)
async def set_contact(contact: AdminContact, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.set_admin_contact(contact)


@router.put("/credentials", response_model=CommandResult)
async def update_credentials(credentials: AdminCredentials, workspace: AdminWorkspace) -> CommandResult:
    return await workspace.commander.update_admin_credentials(credentials.username, credentials.password)


@router.get("/export")
async def export_report(workspace: AdminWorkspace) -> Response:
    """Download candidates, elections and authorized voters."""
    workbook = await collect_export(workspace.ledger)
    filename = export_filename(date.today())
    logger.info("export_downloaded", filename=filename, tables=workbook.table_names)
    return Response(
        content=to_csv_archive(workbook),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
