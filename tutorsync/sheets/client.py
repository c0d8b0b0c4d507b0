# tutorsync/sheets/client.py

from __future__ import annotations

import json
import os
import pickle
import re
from typing import Optional

import gspread
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google_auth_oauthlib.flow import InstalledAppFlow

from tutorsync.config import AppConfig
from tutorsync.errors import ConfigError

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_SPREADSHEET_ID_RE = re.compile(r"/d/([a-zA-Z0-9-_]+)")


def extract_spreadsheet_id(url: Optional[str]) -> Optional[str]:
    """https://docs.google.com/spreadsheets/d/<id>/edit -> <id>"""
    if not url:
        return None
    m = _SPREADSHEET_ID_RE.search(url)
    return m.group(1) if m else None


def _is_service_account_file(path: str) -> bool:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return False
    return isinstance(data, dict) and data.get("type") == "service_account"


def _client_from_oauth(credentials_path: str) -> gspread.Client:
    """Use OAuth Desktop App flow"""
    creds = None
    token_path = os.path.join(os.path.dirname(credentials_path), "token.pickle")

    # Load existing token if it exists
    if os.path.exists(token_path):
        with open(token_path, "rb") as token:
            creds = pickle.load(token)

    # If no valid credentials, let user log in
    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_secrets_file(credentials_path, SCOPES)
            creds = flow.run_local_server(port=0)

        # Save the credentials for next run
        with open(token_path, "wb") as token:
            pickle.dump(creds, token)

    return gspread.authorize(creds)


def open_client(cfg: AppConfig) -> gspread.Client:
    """Authorizes a gspread client.

    Preference order:
      - GOOGLE_APPLICATION_CREDENTIALS pointing at a service-account key
      - inline FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY
      - GOOGLE_APPLICATION_CREDENTIALS pointing at OAuth client secrets
    """
    path = cfg.credentials_path
    if path and _is_service_account_file(path):
        creds = service_account.Credentials.from_service_account_file(path, scopes=SCOPES)
        return gspread.authorize(creds)

    if cfg.has_inline_service_account:
        creds = service_account.Credentials.from_service_account_info(
            cfg.service_account_info(), scopes=SCOPES
        )
        return gspread.authorize(creds)

    if path:
        if not os.path.exists(path):
            raise ConfigError(f"Credentials file not found: {path}")
        return _client_from_oauth(path)

    raise ConfigError("Missing Google Sheets credentials in environment variables")
