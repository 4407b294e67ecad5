from __future__ import annotations

import logging
from functools import lru_cache

from google.oauth2 import service_account
from googleapiclient.discovery import build

from app.core.config import settings

_LOG = logging.getLogger("app.sheets")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]
RESPONSES_TAB = "Responses"


class SheetsNotConfiguredError(RuntimeError):
    pass


def spreadsheet_url(spreadsheet_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"


class GoogleSheetsClient:
    def __init__(self, credentials):
        self.sheets = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        self.drive = build("drive", "v3", credentials=credentials, cache_discovery=False)

    def create_spreadsheet(self, title: str, headers: list[str]) -> tuple[str, str]:
        created = (
            self.sheets.spreadsheets()
            .create(
                body={
                    "properties": {"title": f"{title} - Responses"},
                    "sheets": [
                        {"properties": {"title": RESPONSES_TAB, "gridProperties": {"frozenRowCount": 1}}}
                    ],
                }
            )
            .execute()
        )
        spreadsheet_id = created["spreadsheetId"]
        self.update_headers(spreadsheet_id, headers)
        self.sheets.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={
                "requests": [
                    {
                        "repeatCell": {
                            "range": {"sheetId": 0, "startRowIndex": 0, "endRowIndex": 1},
                            "cell": {
                                "userEnteredFormat": {
                                    "backgroundColor": {"red": 0.9, "green": 0.9, "blue": 0.9},
                                    "textFormat": {"bold": True},
                                }
                            },
                            "fields": "userEnteredFormat(backgroundColor,textFormat)",
                        }
                    }
                ]
            },
        ).execute()
        return spreadsheet_id, created.get("spreadsheetUrl") or spreadsheet_url(spreadsheet_id)

    def update_headers(self, spreadsheet_id: str, headers: list[str]) -> None:
        self.sheets.spreadsheets().values().update(
            spreadsheetId=spreadsheet_id,
            range=f"{RESPONSES_TAB}!A1",
            valueInputOption="RAW",
            body={"values": [headers]},
        ).execute()

    def append_row(self, spreadsheet_id: str, row: list[str]) -> None:
        self.append_rows(spreadsheet_id, [row])

    def append_rows(self, spreadsheet_id: str, rows: list[list[str]]) -> None:
        if not rows:
            return
        self.sheets.spreadsheets().values().append(
            spreadsheetId=spreadsheet_id,
            range=f"{RESPONSES_TAB}!A:A",
            valueInputOption="RAW",
            body={"values": rows},
        ).execute()

    def share(self, spreadsheet_id: str, email: str, role: str = "writer") -> None:
        self.drive.permissions().create(
            fileId=spreadsheet_id,
            body={"type": "user", "role": role, "emailAddress": email},
            sendNotificationEmail=False,
        ).execute()

    def delete_spreadsheet(self, spreadsheet_id: str) -> None:
        self.drive.files().delete(fileId=spreadsheet_id).execute()


def _credentials():
    email = str(settings.GOOGLE_SERVICE_ACCOUNT_EMAIL or "").strip()
    key = settings.google_private_key.strip()
    if not email or not key:
        raise SheetsNotConfiguredError("Google service account credentials are not configured")
    return service_account.Credentials.from_service_account_info(
        {
            "type": "service_account",
            "client_email": email,
            "private_key": key,
            "token_uri": "https://oauth2.googleapis.com/token",
        },
        scopes=SCOPES,
    )


@lru_cache(maxsize=1)
def get_sheets_client() -> GoogleSheetsClient:
    client = GoogleSheetsClient(_credentials())
    _LOG.info("Google Sheets client initialised")
    return client
