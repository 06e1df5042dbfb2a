"""
Vault health analysis.

analyse_vault() is a pure function of the entries and the current time. Each
check runs independently, so an entry can carry several issue types. An entry
that cannot be inspected is logged and skipped instead of aborting the scan.
"""

import datetime
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from . import config
from . import strength
from .models import VaultEntry, now_ms

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class IssueType(str, Enum):
    WEAK = "weak"
    REUSED = "reused"
    OLD = "old"
    NO_2FA = "no-2fa"


@dataclass
class PasswordIssue:
    entry_id: str
    type: IssueType
    detail: Optional[str] = None


@dataclass
class VaultHealthReport:
    issues: List[PasswordIssue] = field(default_factory=list)
    summary: Dict[IssueType, int] = field(default_factory=dict)

    def for_entry(self, entry_id: str) -> List[PasswordIssue]:
        return [i for i in self.issues if i.entry_id == entry_id]

    def count(self, issue_type: IssueType) -> int:
        return self.summary.get(issue_type, 0)


@dataclass
class _Inspected:
    id: str
    password: str
    updated_at: int
    totp_secret: Optional[str]


def _inspect(entry: VaultEntry) -> _Inspected:
    """Pull out the checked fields, raising if the entry is malformed."""
    if not isinstance(entry.id, str) or not entry.id:
        raise ValueError("entry has no id")
    if not isinstance(entry.password, str):
        raise TypeError("password is not a string")
    if isinstance(entry.updated_at, bool) or not isinstance(entry.updated_at, (int, float)):
        raise TypeError("updatedAt is not a number")
    if entry.totp_secret is not None and not isinstance(entry.totp_secret, str):
        raise TypeError("totpSecret is not a string")
    return _Inspected(entry.id, entry.password, int(entry.updated_at), entry.totp_secret)


def _format_date(ms: int) -> str:
    return datetime.datetime.fromtimestamp(ms / 1000).strftime(config.HEALTH_DATE_FORMAT)


def analyse_vault(entries: Iterable[VaultEntry], now: Optional[int] = None,
                  scorer: Callable[[str], int] = strength.score) -> VaultHealthReport:
    """
    Scan entries for weak, reused, old and 2FA-less credentials.

    Args:
        entries: Vault entries to analyse
        now: Current time in epoch milliseconds; defaults to the system clock
        scorer: Strength estimator returning 0-4

    Returns:
        A freshly built VaultHealthReport
    """
    if now is None:
        now = now_ms()

    inspected: List[_Inspected] = []
    for entry in entries:
        try:
            inspected.append(_inspect(entry))
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed vault entry during health scan: {e}")

    issues: List[PasswordIssue] = []

    for entry in inspected:
        try:
            entry_score = scorer(entry.password)
        except Exception as e:
            logger.warning(f"Strength estimation failed for entry {entry.id}: {type(e).__name__}")
            continue
        if entry_score < config.WEAK_SCORE_THRESHOLD:
            issues.append(PasswordIssue(entry.id, IssueType.WEAK, f"Strength score {entry_score}/4"))

    # Exact match, so the empty password forms a group like any other
    groups: Dict[str, List[_Inspected]] = defaultdict(list)
    for entry in inspected:
        groups[entry.password].append(entry)
    for group in groups.values():
        if len(group) > 1:
            for entry in group:
                issues.append(PasswordIssue(entry.id, IssueType.REUSED, f"Reused {len(group)} times"))

    max_age = config.MAX_PASSWORD_AGE_DAYS * DAY_MS
    for entry in inspected:
        if now - entry.updated_at > max_age:
            issues.append(PasswordIssue(
                entry.id,
                IssueType.OLD,
                f"Last updated on {_format_date(entry.updated_at)} "
                f"(over {config.MAX_PASSWORD_AGE_DAYS} days ago)",
            ))

    for entry in inspected:
        if not entry.totp_secret:
            issues.append(PasswordIssue(entry.id, IssueType.NO_2FA))

    summary = {issue_type: 0 for issue_type in IssueType}
    for issue in issues:
        summary[issue.type] += 1

    return VaultHealthReport(issues=issues, summary=summary)
