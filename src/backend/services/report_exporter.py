"""
Election report export.

The workbook has exactly three tables (Candidates, Elections, Authorized
Voters) whose row counts equal the input lengths. Building the workbook is
pure; fetching its inputs is a separate step.
"""

import asyncio
import csv
import io
import zipfile
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from core.config import settings
from core.exceptions import FetchFailure
from repositories.ledger import LedgerClientProtocol
from schemas.election import Candidate, ElectionWindow
from schemas.export import ExportTable, ExportWorkbook
from schemas.identity import IdentityRef

logger = structlog.get_logger(__name__)

CANDIDATES_TABLE = "Candidates"
ELECTIONS_TABLE = "Elections"
AUTHORIZED_VOTERS_TABLE = "Authorized Voters"

CANDIDATE_COLUMNS = ["ID", "Name", "Party", "Post", "Votes"]
ELECTION_COLUMNS = ["Post", "Status", "StartTime", "EndTime"]
VOTER_COLUMNS = ["Address"]

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_time(value: Optional[datetime], tz: ZoneInfo) -> str:
    if value is None:
        return ""
    return value.astimezone(tz).strftime(TIME_FORMAT)


def build_workbook(
    candidates: list[Candidate],
    windows: list[ElectionWindow],
    authorized_voters: list[IdentityRef],
    tz: Optional[ZoneInfo] = None,
) -> ExportWorkbook:
    """Lay out the three export tables."""
    tz = tz or ZoneInfo(settings.DISPLAY_TIMEZONE)
    return ExportWorkbook(
        tables=[
            ExportTable(
                name=CANDIDATES_TABLE,
                columns=CANDIDATE_COLUMNS,
                rows=[[c.id, c.name, c.party, c.post, c.vote_count] for c in candidates],
            ),
            ExportTable(
                name=ELECTIONS_TABLE,
                columns=ELECTION_COLUMNS,
                rows=[
                    [
                        w.post,
                        w.state.export_label,
                        format_time(w.start_time, tz),
                        format_time(w.end_time, tz),
                    ]
                    for w in windows
                ],
            ),
            ExportTable(
                name=AUTHORIZED_VOTERS_TABLE,
                columns=VOTER_COLUMNS,
                rows=[[voter.address] for voter in authorized_voters],
            ),
        ]
    )


def _table_to_csv(table: ExportTable) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(table.columns)
    writer.writerows(table.rows)
    return output.getvalue()


def to_csv_archive(workbook: ExportWorkbook) -> bytes:
    """Serialize the workbook as a zip archive holding one CSV per table."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for table in workbook.tables:
            archive.writestr(f"{table.name.replace(' ', '_')}.csv", _table_to_csv(table))
    return buffer.getvalue()


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{settings.EXPORT_FILENAME_PREFIX}_{today.isoformat()}.zip"


async def collect_export(ledger: LedgerClientProtocol) -> ExportWorkbook:
    """
    Fetch the ledger state needed for an export and build the workbook.

    Raises:
        FetchFailure: If any read fails; a partial export is never produced.
    """
    try:
        posts, candidates, voters = await asyncio.gather(
            ledger.list_posts(),
            ledger.list_candidates(),
            ledger.list_authorized_voters(),
        )
        windows = await asyncio.gather(*(ledger.get_election_info(post) for post in posts))
    except FetchFailure:
        raise
    except Exception as e:
        raise FetchFailure("export data", e) from e

    workbook = build_workbook(candidates, list(windows), voters)
    logger.info(
        "export_collected",
        candidates=len(candidates),
        elections=len(windows),
        authorized_voters=len(voters),
    )
    return workbook
