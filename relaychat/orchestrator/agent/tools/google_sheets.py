"""Google Sheets tools."""

from typing import Any

from pydantic import BaseModel, Field

from relaychat.orchestrator.agent.tools.core import ActionSpec, register_integration

INTEGRATION = "Google Sheets"


class CreateSheetInput(BaseModel):
    title: str = Field(description="Title for the new spreadsheet")


class BatchGetInput(BaseModel):
    spreadsheet_id: str = Field(description="Spreadsheet id")
    ranges: list[str] | None = Field(
        default=None, description="A1 ranges to read, e.g. ['Sheet1!A1:C10']"
    )


class BatchUpdateInput(BaseModel):
    spreadsheet_id: str = Field(description="Spreadsheet id")
    sheet_name: str = Field(description="Name of the sheet to write")
    values: list[list[Any]] = Field(description="Rows of cell values to write")
    first_cell_location: str | None = Field(
        default=None, description="Top-left cell for the write, e.g. 'A1'. Omit to append."
    )
    value_input_option: str = Field(
        default="USER_ENTERED", description="'RAW' or 'USER_ENTERED'"
    )


class ClearValuesInput(BaseModel):
    spreadsheet_id: str = Field(description="Spreadsheet id")
    range: str = Field(description="A1 range to clear")


class AddSheetInput(BaseModel):
    spreadsheet_id: str = Field(description="Spreadsheet id")
    title: str = Field(description="Title of the new sheet tab")


class ExecuteSqlInput(BaseModel):
    spreadsheet_id: str = Field(description="Spreadsheet id")
    sql: str = Field(description="SQL query run against the sheet's tables")


class SpreadsheetInfoInput(BaseModel):
    spreadsheet_id: str = Field(description="Spreadsheet id")


ACTIONS = [
    ActionSpec(
        name="googleSheetsCreateGoogleSheet",
        description="Create a new Google Sheets spreadsheet.",
        input_model=CreateSheetInput,
        action="GOOGLESHEETS_CREATE_GOOGLE_SHEET1",
        success_message="Spreadsheet created successfully",
    ),
    ActionSpec(
        name="googleSheetsBatchGet",
        description="Read one or more ranges from a spreadsheet.",
        input_model=BatchGetInput,
        action="GOOGLESHEETS_BATCH_GET",
        success_message="Spreadsheet values retrieved successfully",
    ),
    ActionSpec(
        name="googleSheetsBatchUpdate",
        description="Write rows of values to a sheet, starting at a cell or appended.",
        input_model=BatchUpdateInput,
        action="GOOGLESHEETS_BATCH_UPDATE",
        success_message="Spreadsheet updated successfully",
    ),
    ActionSpec(
        name="googleSheetsClearValues",
        description="Clear values from a range, keeping formatting.",
        input_model=ClearValuesInput,
        action="GOOGLESHEETS_CLEAR_VALUES",
        success_message="Values cleared successfully",
    ),
    ActionSpec(
        name="googleSheetsAddSheet",
        description="Add a new sheet tab to an existing spreadsheet.",
        input_model=AddSheetInput,
        action="GOOGLESHEETS_ADD_SHEET",
        success_message="Sheet added successfully",
    ),
    ActionSpec(
        name="googleSheetsExecuteSql",
        description="Run a SQL query against the tables of a spreadsheet.",
        input_model=ExecuteSqlInput,
        action="GOOGLESHEETS_EXECUTE_SQL",
        success_message="Query executed successfully",
    ),
    ActionSpec(
        name="googleSheetsGetSpreadsheetInfo",
        description="Get spreadsheet metadata: title, sheets, and properties.",
        input_model=SpreadsheetInfoInput,
        action="GOOGLESHEETS_GET_SPREADSHEET_INFO",
        success_message="Spreadsheet info retrieved successfully",
    ),
]


def register(registry) -> None:
    """Register Google Sheets tools."""
    register_integration(registry, INTEGRATION, ACTIONS)
