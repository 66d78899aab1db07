"""Spreadsheet export for extracted listing records."""

import logging
from pathlib import Path
from typing import Any, Iterable, List, NamedTuple, Union
from urllib.parse import quote

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from localpack.models import Record

logger = logging.getLogger(__name__)

MAPS_SEARCH_URL = "http://google.com/search"
# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


class Column(NamedTuple):
    header: str
    width: int
    wrap: bool = False
    formula: bool = False


COLUMNS = (
    Column("Name", 30),
    Column("Category", 20),
    Column("No. Of Reviews", 15),
    Column("Stars", 10),
    Column("Phone Number", 20),
    Column("Address", 60, wrap=True),
    Column("Place Website", 50),
    Column("Gmap URL", 25, formula=True),
)


def maps_link_formula(record: Record) -> str:
    """HYPERLINK formula pointing at a search for the listing's name and address."""
    target = quote(f"{record.title} {record.address}", safe=_URI_COMPONENT_SAFE)
    return f'=HYPERLINK("{MAPS_SEARCH_URL}?q={target}", "View Map")'


def to_sheet_row(record: Record) -> List[Any]:
    return [
        record.title,
        record.category,
        record.reviews,
        record.stars,
        record.complete_phone_number,
        record.address,
        record.url or "",
        maps_link_formula(record),
    ]


def write_workbook(records: Iterable[Record], output_path: Union[str, Path]) -> Path:
    """Write records to an .xlsx file and return its path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Listings"

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="4A90D9", end_color="4A90D9", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for col_idx, column in enumerate(COLUMNS, start=1):
        cell = sheet.cell(row=1, column=col_idx, value=column.header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment
        sheet.column_dimensions[get_column_letter(col_idx)].width = column.width
    sheet.freeze_panes = "A2"

    count = 0
    for row_idx, record in enumerate(records, start=2):
        for col_idx, (column, value) in enumerate(zip(COLUMNS, to_sheet_row(record)), start=1):
            cell = sheet.cell(row=row_idx, column=col_idx, value=value)
            # Scraped text starting with "=" must stay text, not become a formula.
            if isinstance(value, str) and not column.formula:
                cell.data_type = "s"
            if column.wrap:
                cell.alignment = Alignment(vertical="top", wrap_text=True)
        count += 1

    workbook.save(output_path)
    logger.info("Wrote %d records to %s", count, output_path)
    return output_path
