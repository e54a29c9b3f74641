"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a remote backend because:
1. Users can view their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: a save deletes the user's rows and appends the new
  ones, serialized per user with an asyncio.Lock
- Limited query capabilities (the ledger aggregates in Python anyway)

Every worksheet carries a userId column, so several users can share one
spreadsheet.
"""

import asyncio
from decimal import Decimal
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budget_tracker.config import GoogleSheetsSettings, get_settings
from budget_tracker.models.transaction import Category, Transaction
from budget_tracker.services.storage.interface import (
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)
from budget_tracker.validation import (
    TransactionValidator,
    parse_budget_limit,
    parse_category,
)


# Column mappings for the Transactions and PendingInstallments sheets
TRANSACTION_COLUMNS = [
    "userId",
    "id",
    "title",
    "amount",
    "category",
    "date",
    "description",
    "isRecurring",
    "isInstallment",
    "totalInstallments",
    "currentInstallment",
    "totalAmount",
    "installmentAmount",
    "installmentDescription",
]

BOOLEAN_COLUMNS = {"isRecurring", "isInstallment"}

# Column mappings for the Budgets sheet
BUDGET_COLUMNS = [
    "userId",
    "category",
    "limit",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def transactions_sheet_name(self) -> str:
        return self._settings.transactions_sheet_name

    @property
    def budgets_sheet_name(self) -> str:
        return self._settings.budgets_sheet_name

    @property
    def pending_sheet_name(self) -> str:
        return self._settings.pending_sheet_name

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, name: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=name,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


def _to_cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def _transaction_to_row(user_id: str, transaction: Transaction) -> list[str]:
    """Convert a Transaction to a spreadsheet row."""
    document = transaction.to_document()
    document["userId"] = user_id
    return [_to_cell(document.get(column)) for column in TRANSACTION_COLUMNS]


def _row_to_record(row: list[str]) -> dict:
    """Convert a spreadsheet row to a raw record for the validator."""
    record = {}
    for column, value in zip(TRANSACTION_COLUMNS, row):
        if value == "":
            continue
        if column in BOOLEAN_COLUMNS:
            record[column] = value.strip().upper() == "TRUE"
        else:
            record[column] = value
    return record


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Transactions are stored one per row. Saving a collection replaces all
    of the user's rows in the corresponding worksheet.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        validator: Optional[TransactionValidator] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._validator = validator or TransactionValidator()
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def _user_rows(self, sheet_name: str, columns: list[str], user_id: str) -> list[list[str]]:
        try:
            sheet = self._client.get_worksheet(sheet_name, columns)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {sheet_name}: {e}")
        return [row for row in all_rows if row and row[0] == user_id]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        reraise=True,
    )
    def _replace_user_rows(
        self,
        sheet_name: str,
        columns: list[str],
        user_id: str,
        rows: list[list[str]],
    ) -> None:
        sheet = self._client.get_worksheet(sheet_name, columns)
        all_rows = sheet.get_all_values()

        # Delete bottom-up so earlier row indexes stay valid (row 1 is header)
        owned = [
            idx for idx, row in enumerate(all_rows[1:], start=2)
            if row and row[0] == user_id
        ]
        for idx in reversed(owned):
            sheet.delete_rows(idx)

        if rows:
            sheet.append_rows(rows, value_input_option="RAW")

    async def _save_rows(
        self,
        sheet_name: str,
        columns: list[str],
        user_id: str,
        rows: list[list[str]],
    ) -> bool:
        async with self._lock_for(user_id):
            try:
                self._replace_user_rows(sheet_name, columns, user_id, rows)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save {sheet_name}: {e}")
        return True

    async def load_transactions(self, user_id: str) -> list[Transaction]:
        rows = self._user_rows(
            self._client.transactions_sheet_name, TRANSACTION_COLUMNS, user_id
        )
        return self._validator.parse_records(_row_to_record(row) for row in rows)

    async def save_transactions(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        return await self._save_rows(
            self._client.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            user_id,
            [_transaction_to_row(user_id, t) for t in transactions],
        )

    async def load_budgets(self, user_id: str) -> dict[Category, Decimal]:
        rows = self._user_rows(
            self._client.budgets_sheet_name, BUDGET_COLUMNS, user_id
        )
        return {
            parse_category(row[1]): parse_budget_limit(row[2])
            for row in rows
            if len(row) >= 3
        }

    async def save_budgets(
        self,
        user_id: str,
        budgets: dict[Category, Decimal],
    ) -> bool:
        return await self._save_rows(
            self._client.budgets_sheet_name,
            BUDGET_COLUMNS,
            user_id,
            [[user_id, category.value, str(limit)] for category, limit in budgets.items()],
        )

    async def load_pending_installments(self, user_id: str) -> list[Transaction]:
        rows = self._user_rows(
            self._client.pending_sheet_name, TRANSACTION_COLUMNS, user_id
        )
        return self._validator.parse_records(_row_to_record(row) for row in rows)

    async def save_pending_installments(
        self,
        user_id: str,
        transactions: list[Transaction],
    ) -> bool:
        return await self._save_rows(
            self._client.pending_sheet_name,
            TRANSACTION_COLUMNS,
            user_id,
            [_transaction_to_row(user_id, t) for t in transactions],
        )
