import os, base64, re, logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Tuple
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from google.auth.transport.requests import Request
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

logger = logging.getLogger(__name__)

CREDENTIALS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", "credentials")
CLIENT_SECRET_FILE = os.path.join(CREDENTIALS_DIR, "client_secret.json")
TOKEN_FILE = os.path.join(CREDENTIALS_DIR, "token.json")

# Request both scopes once so token.json works for Gmail and Sheets
SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class MailboxError(Exception):
    """A Gmail request failed."""


@dataclass(frozen=True)
class Message:
    id: str
    subject: str
    body: str
    sender: str
    date: datetime


def _ensure_creds(scopes: List[str]) -> Credentials:
    os.makedirs(CREDENTIALS_DIR, exist_ok=True)
    creds: Optional[Credentials] = None
    if os.path.exists(TOKEN_FILE):
        creds = Credentials.from_authorized_user_file(TOKEN_FILE, scopes)
    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        else:
            flow = InstalledAppFlow.from_client_secrets_file(CLIENT_SECRET_FILE, scopes)
            creds = flow.run_local_server(port=0)
        with open(TOKEN_FILE, "w", encoding="utf-8") as token:
            token.write(creds.to_json())
    return creds


def get_gmail_service():
    creds = _ensure_creds(SCOPES)
    return build("gmail", "v1", credentials=creds)


def _get_header(headers: List[Dict[str, str]], name: str) -> str:
    for h in headers:
        if h.get("name", "").lower() == name.lower():
            return h.get("value", "")
    return ""


def _decode_payload(data: str) -> str:
    # Gmail returns base64url-encoded data
    missing_padding = len(data) % 4
    if missing_padding:
        data += "=" * (4 - missing_padding)
    return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")


def _clean_text(s: str) -> str:
    s = re.sub(r"[\u200B-\u200D\uFEFF]", "", s or "")
    s = re.sub(r"[ \t]+", " ", s)
    s = re.sub(r"\s+\n", "\n", s)
    return s.strip()


def extract_plain_text(message: Dict[str, Any]) -> Tuple[str, str, str]:
    """Returns: (subject, from_header, text)

    Prefers text/plain parts; HTML parts are only stripped of tags and used
    when a message has no plain-text alternative.
    """
    payload = message.get("payload", {})
    headers = payload.get("headers", [])
    subject = _get_header(headers, "Subject")
    from_header = _get_header(headers, "From")

    plain: List[str] = []
    html: List[str] = []

    def traverse(parts):
        for p in parts:
            mime = p.get("mimeType", "")
            if "parts" in p:
                traverse(p["parts"])
            elif mime == "text/plain" and "data" in p.get("body", {}):
                plain.append(_decode_payload(p["body"]["data"]))
            elif mime == "text/html" and "data" in p.get("body", {}):
                text = re.sub("<[^<]+?>", " ", _decode_payload(p["body"]["data"]))
                html.append(text)

    if "parts" in payload:
        traverse(payload["parts"])
    else:
        body = payload.get("body", {})
        if "data" in body:
            decoded = _decode_payload(body["data"])
            if payload.get("mimeType") == "text/html":
                html.append(re.sub("<[^<]+?>", " ", decoded))
            else:
                plain.append(decoded)

    body_text = "\n".join(plain or html)
    return _clean_text(subject), _clean_text(from_header), _clean_text(body_text)


def parse_message(raw: Dict[str, Any]) -> Message:
    subject, from_header, body = extract_plain_text(raw)
    internal_date_ms = int(raw.get("internalDate", "0"))
    return Message(
        id=raw.get("id", ""),
        subject=subject,
        body=body,
        sender=from_header,
        date=datetime.fromtimestamp(internal_date_ms / 1000, tz=timezone.utc),
    )


class GmailThread:
    """A Gmail thread whose messages are fetched on first access."""

    def __init__(self, service, thread_id: str):
        self._service = service
        self.id = thread_id
        self._messages: Optional[List[Message]] = None

    def get_messages(self) -> List[Message]:
        """Messages oldest first. Raises MailboxError if the thread is gone."""
        if self._messages is None:
            try:
                resp = self._service.users().threads().get(
                    userId="me", id=self.id, format="full"
                ).execute()
            except HttpError as e:
                raise MailboxError(f"could not fetch thread {self.id}: {e}") from e
            messages = [parse_message(m) for m in resp.get("messages", [])]
            self._messages = sorted(messages, key=lambda m: m.date)
        return self._messages


class GmailMailbox:
    def __init__(self, service=None, max_results: int = 200):
        self._service = service
        self.max_results = max_results

    @property
    def service(self):
        if self._service is None:
            self._service = get_gmail_service()
        return self._service

    def search(self, query: str) -> List[GmailThread]:
        """Threads matching a Gmail search query, newest first.

        Failures propagate as MailboxError; a scan cannot proceed without
        its search results.
        """
        threads: List[GmailThread] = []
        page_token = None
        while len(threads) < self.max_results:
            try:
                resp = self.service.users().threads().list(
                    userId="me",
                    q=query,
                    maxResults=min(100, self.max_results - len(threads)),
                    pageToken=page_token,
                ).execute()
            except HttpError as e:
                raise MailboxError(f"Gmail search failed: {e}") from e
            threads.extend(GmailThread(self.service, t["id"]) for t in resp.get("threads", []))
            page_token = resp.get("nextPageToken")
            if not page_token:
                break
        logger.debug("Query %r matched %d threads", query, len(threads))
        return threads[:self.max_results]

    def get_thread(self, thread_id: str) -> GmailThread:
        return GmailThread(self.service, thread_id)
