"""
Export artifact schemas.
"""

from pydantic import BaseModel, Field


class ExportTable(BaseModel):
    """A named table with ordered columns."""

    name: str
    columns: list[str]
    rows: list[list[str | int]] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def as_records(self) -> list[dict[str, str | int]]:
        return [dict(zip(self.columns, row)) for row in self.rows]


class ExportWorkbook(BaseModel):
    """Workbook-like container of export tables."""

    tables: list[ExportTable] = Field(default_factory=list)

    @property
    def table_names(self) -> list[str]:
        return [table.name for table in self.tables]

    def table(self, name: str) -> ExportTable:
        for table in self.tables:
            if table.name == name:
                return table
        raise KeyError(name)
