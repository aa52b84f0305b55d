from typing import List, Optional

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from deskflow.config import settings
from deskflow.logging_config import get_logger
from deskflow.services.errors import ProviderError
from deskflow.services.interfaces import SpreadsheetProvider

logger = get_logger("sheets_service")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def get_credentials(service_account_file: str):
    return service_account.Credentials.from_service_account_file(service_account_file, scopes=SCOPES)


class GoogleSheetsProvider(SpreadsheetProvider):
    """Google Sheets v4 values API behind the SpreadsheetProvider interface."""

    def __init__(self, spreadsheet_id: str, service=None, service_account_file: Optional[str] = None):
        self.spreadsheet_id = spreadsheet_id
        self._service = service
        self._service_account_file = service_account_file or settings.google_service_account_file

    @property
    def service(self):
        if self._service is None:
            try:
                credentials = get_credentials(self._service_account_file)
            except (OSError, ValueError, GoogleAuthError) as exc:
                raise ProviderError(f"Google credentials unavailable: {exc}") from exc
            self._service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return self._service

    def _values(self):
        return self.service.spreadsheets().values()

    def write_range(self, cell_range: str, values: List[List[str]]) -> int:
        try:
            result = self._values().update(
                spreadsheetId=self.spreadsheet_id,
                range=cell_range,
                valueInputOption="USER_ENTERED",
                body={"values": values},
            ).execute()
        except HttpError as exc:
            logger.error(f"Sheets update failed: {exc}")
            raise ProviderError(f"Sheets update failed: {exc}") from exc
        return int(result.get("updatedCells", 0))

    def append_row(self, cell_range: str, row: List[str]) -> int:
        try:
            result = self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=cell_range,
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": [row]},
            ).execute()
        except HttpError as exc:
            logger.error(f"Sheets append failed: {exc}")
            raise ProviderError(f"Sheets append failed: {exc}") from exc
        return int(result.get("updates", {}).get("updatedCells", 0))

    def read_range(self, cell_range: str) -> List[List[str]]:
        try:
            result = self._values().get(spreadsheetId=self.spreadsheet_id, range=cell_range).execute()
        except HttpError as exc:
            logger.error(f"Sheets read failed: {exc}")
            raise ProviderError(f"Sheets read failed: {exc}") from exc
        return result.get("values", [])


def build_sheets_provider() -> Optional[GoogleSheetsProvider]:
    if not settings.spreadsheet_id or not settings.google_service_account_file:
        return None
    return GoogleSheetsProvider(settings.spreadsheet_id)
