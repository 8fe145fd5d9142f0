import os, json, yaml
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

import pytz
from dotenv import load_dotenv

from .nlp_rules import STATUS_RULES
from .status import Status, parse_status

CONFIG_PATH = os.environ.get(
    "APPTRACK_CONFIG",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", "config.yaml")
)
STATE_PATH = os.environ.get(
    "APPTRACK_STATE",
    os.path.join(os.path.dirname(os.path.dirname(__file__)), "..", "data", "state.json")
)

load_dotenv()

# Subject phrases OR-ed together into the discovery query.
DEFAULT_SUBJECT_CLAUSES = (
    "thank you for applying",
    "thanks for applying",
    "application received",
    "application confirmation",
    "your application",
    "we received your application",
    "application submitted",
    "thank you for your interest",
)

@dataclass
class Settings:
    app: Dict[str, Any] = field(default_factory=dict)
    gmail: Dict[str, Any] = field(default_factory=dict)
    sheets: Dict[str, Any] = field(default_factory=dict)
    schedule: Dict[str, Any] = field(default_factory=dict)
    spreadsheet_id: Optional[str] = os.environ.get("GOOGLE_SHEETS_SPREADSHEET_ID")


@dataclass(frozen=True)
class ScanConfig:
    """Everything a single scan needs, fixed for the duration of the run."""
    lookback_days: int = 30
    timezone: str = "UTC"
    max_threads: int = 200
    subject_clauses: Tuple[str, ...] = DEFAULT_SUBJECT_CLAUSES
    status_rules: Tuple[Tuple[Status, Tuple[str, ...]], ...] = STATUS_RULES
    dry_run: bool = False

    @property
    def tz(self):
        return pytz.timezone(self.timezone)


def load_settings(path: Optional[str] = None) -> Settings:
    with open(path or CONFIG_PATH, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    # we have to ensure optional blocks exist
    for block in ("app", "gmail", "sheets", "schedule"):
        cfg[block] = cfg.get(block) or {}
    return Settings(**cfg)


def _rules_from_config(raw: Sequence[Dict[str, Any]]) -> Tuple[Tuple[Status, Tuple[str, ...]], ...]:
    rules = []
    for entry in raw:
        rules.append((parse_status(entry["status"]), tuple(entry["patterns"])))
    return tuple(rules)


def scan_config(settings: Settings, dry_run: bool = False) -> ScanConfig:
    app = settings.app
    gmail = settings.gmail
    tz_name = app.get("timezone", "UTC")
    pytz.timezone(tz_name)  # fail fast on a typo, before touching the mailbox
    clauses = gmail.get("subject_clauses") or DEFAULT_SUBJECT_CLAUSES
    rules = gmail.get("status_rules")
    return ScanConfig(
        lookback_days=int(gmail.get("lookback_days", 30)),
        timezone=tz_name,
        max_threads=int(gmail.get("max_threads", 200)),
        subject_clauses=tuple(clauses),
        status_rules=_rules_from_config(rules) if rules else STATUS_RULES,
        dry_run=dry_run or bool(app.get("dry_run", False)),
    )


def load_state(path: Optional[str] = None) -> dict:
    path = path or STATE_PATH
    if not os.path.exists(path):
        return {"auto_scan": {"enabled": False, "hour": None}}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_state(state: dict, path: Optional[str] = None) -> None:
    path = path or STATE_PATH
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(state, f, indent=2)


def clear_state(path: Optional[str] = None) -> None:
    path = path or STATE_PATH
    if os.path.exists(path):
        os.remove(path)
