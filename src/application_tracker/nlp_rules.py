import logging
import re
from functools import lru_cache
from typing import Optional, Sequence, Tuple

from .status import Status

logger = logging.getLogger(__name__)

UNKNOWN_COMPANY = "Unknown"
TITLE_MAX_WORDS = 8
BODY_PREFIX_CHARS = 500

# Evaluated top to bottom; the most advanced status comes first so a message
# carrying several signals resolves to the furthest one.
STATUS_RULES: Tuple[Tuple[Status, Tuple[str, ...]], ...] = (
    (Status.OFFER, (
        r"\boffer letter\b",
        r"pleased to offer",
        r"delighted to offer",
        r"happy to offer",
        r"extend (?:you )?an offer",
        r"offer of employment",
        r"\bjob offer\b",
    )),
    (Status.INTERVIEW, (
        r"interview invitation",
        r"interview (?:request|confirmation|details)",
        r"invit(?:e|ing) you to (?:an? |your )?(?:\w+ )?interview",
        r"(?:schedule|book|set up) (?:an|your) interview with",
        r"(?:like|love) to interview you",
        r"your interview (?:is|has been) (?:booked|scheduled|confirmed)",
        r"schedule a call",
        r"schedule a time",
        r"book a time",
        r"phone screen",
        r"next round",
        r"your availability",
    )),
    (Status.REJECTED, (
        r"\bunfortunately\b",
        r"we regret",
        r"not (?:be )?moving forward",
        r"move forward with other candidates",
        r"pursue other candidates",
        r"no longer under consideration",
        r"position has been filled",
        r"will not be proceeding",
    )),
    (Status.APPLIED, (
        r"thank you for applying",
        r"thanks for applying",
        r"application (?:has been )?received",
        r"we(?: have|'ve)? received your application",
        r"application confirmation",
        r"application (?:has been )?submitted",
        r"thank you for your application",
        r"thank you for your interest",
    )),
)

_NAME = r"([A-Za-z0-9&'][^!?.,;:|()\n]*?)"
_NAME_END = r"(?=\s+[-–—|]\s|\s+(?:for|regarding)\s|[!?.,;:|()\n]|$)"
_SEP = r"\s*[-–—|:]\s*"

COMPANY_PATTERNS = [
    re.compile(r"thank(?:s| you) for applying (?:to|at|with)\s+" + _NAME + _NAME_END, re.I),
    re.compile(r"thank(?:s| you) for your (?:application|interest) (?:to|at|in|with)\s+" + _NAME + _NAME_END, re.I),
    re.compile(r"your application (?:to|at|with)\s+" + _NAME + _NAME_END, re.I),
    re.compile(r"^\s*" + _NAME + r"\s+[-–—|:]\s+(?:your )?application (?:received|confirmation|submitted)", re.I),
    re.compile(
        r"^\s*(?:interview invitation|interview request|application (?:received|confirmation|submitted|update|status)"
        r"|your application|offer letter)" + _SEP + _NAME + _NAME_END,
        re.I,
    ),
    re.compile(r"(?:interview|offer) (?:with|from|at)\s+" + _NAME + _NAME_END, re.I),
    re.compile(r"application (?:to|at|with)\s+" + _NAME + _NAME_END, re.I),
]

GENERIC_DOMAIN_TOKENS = frozenset({
    "mail", "email", "noreply", "no-reply", "careers", "jobs", "hr",
    "recruiting", "talent", "apply", "us", "eu", "app", "notifications",
    # applicant tracking systems
    "greenhouse", "greenhouse-mail", "lever", "hire", "workday", "myworkday",
    "myworkdayjobs", "icims", "smartrecruiters", "ashbyhq", "jobvite",
    "taleo", "workable", "bamboohr", "breezy", "successfactors",
})
# Workday tenants live on numbered shards: acme.wd5.myworkdayjobs.com
_GENERIC_DOMAIN_LABEL = re.compile(r"wd\d+$")
_SECOND_LEVEL = frozenset({"co", "com", "org", "net", "ac", "gov", "edu"})
_SENDER_DOMAIN = re.compile(r"@([A-Za-z0-9.-]+)")

_TITLE_END = r"(?=\s+(?:at|with)\s|[\n.!?,;:()|]|$)"

TITLE_PATTERNS = [
    re.compile(r"job title\s*:\s*([^\n.!?,;()|]+)", re.I),
    re.compile(r"(?:position|role) of\s+(?:the\s+)?([A-Za-z0-9][^\n.!?,;:()|]*?)" + _TITLE_END, re.I),
    re.compile(
        r"for the\s+((?:(?!\bfor the\b)[^\n.!?,;:()|])+?)\s+(?:position|role|opening)\b",
        re.I,
    ),
    re.compile(
        r"(?:applying|applied|application) for\s+(?:the |our |a |an )?"
        r"(?!(?:position|role|opening|job)\b)([A-Za-z0-9][^\n.!?,;:()|]*?)"
        r"(?=\s+(?:position|role|opening)\b|\s+(?:at|with)\s|[\n.!?,;:()|]|$)",
        re.I,
    ),
]


def title_case(text: str) -> str:
    """Lowercase, then capitalise the first letter after whitespace or a hyphen."""
    lowered = (text or "").lower()
    return re.sub(r"(^|[\s-])([a-z])", lambda m: m.group(1) + m.group(2).upper(), lowered)


def _clean_capture(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip(" -–—|:'\"")


def _is_generic_label(label: str) -> bool:
    return label in GENERIC_DOMAIN_TOKENS or _GENERIC_DOMAIN_LABEL.match(label) is not None


def _company_from_sender(sender: str) -> str:
    m = _SENDER_DOMAIN.search(sender or "")
    if not m:
        return UNKNOWN_COMPANY
    labels = [label for label in m.group(1).lower().strip(".").split(".") if label]
    if len(labels) > 1:
        labels = labels[:-1]
    while len(labels) > 1 and labels[-1] in _SECOND_LEVEL:
        labels.pop()
    residue = [label for label in labels if not _is_generic_label(label)]
    if not residue:
        return UNKNOWN_COMPANY
    return title_case(residue[-1])


def extract_company(subject: str, sender: str) -> str:
    subject = subject or ""
    for pattern in COMPANY_PATTERNS:
        m = pattern.search(subject)
        if m:
            candidate = _clean_capture(m.group(1))
            if candidate:
                return title_case(candidate)
    return _company_from_sender(sender)


def extract_job_title(subject: str, body: str) -> str:
    """Best-effort job title; an empty string means the title is unknown."""
    text = f"{subject or ''}\n{(body or '')[:BODY_PREFIX_CHARS]}"
    for pattern in TITLE_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        candidate = _clean_capture(m.group(1))
        # long captures are usually a sentence fragment, not a title
        if candidate and len(candidate.split()) <= TITLE_MAX_WORDS:
            return title_case(candidate)
    return ""


@lru_cache(maxsize=None)
def _compile(pattern: str) -> Optional["re.Pattern[str]"]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        logger.debug("Pattern %r is not a valid regex (%s); using substring match", pattern, e)
        return None


def _matches(pattern: str, text: str) -> bool:
    compiled = _compile(pattern)
    if compiled is None:
        return pattern.lower() in text
    return compiled.search(text) is not None


def classify_status(
    subject: str,
    body: str,
    rules: Sequence[Tuple[Status, Sequence[str]]] = STATUS_RULES,
) -> Optional[Status]:
    text = f"{subject or ''}\n{body or ''}".lower()
    for label, patterns in rules:
        for pattern in patterns:
            if _matches(pattern, text):
                return label
    return None
