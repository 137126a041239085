"""
History compaction: bound the discovery log and the conversation transcript.

Both functions are pure string -> string transforms.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from functools import cmp_to_key
from typing import List, Optional

from relaycode.protocol.lexer import BOX_BOTTOM, BOX_TOP

DEFAULT_MAX_DISCOVERIES = 50
DEFAULT_MAX_CONVERSATION_CHARS = 250000
RECENT_EXCHANGES = 3
MAX_DECISIONS = 5
MAX_DISCOVERIES = 3
WEIGHT_TIE = 0.1

_DISCOVERY_LINE_RE = re.compile(r"^\[([^\]]+)\] importance:(\d+) (.+)$")
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d.%m.%Y", "%b %d %Y", "%B %d %Y", "%d %b %Y")

USER_PREFIX = "> "
SYSTEM_PREFIXES = ("SYSTEM:", "╔═ SYSTEM:")
_DECISION_RE = re.compile(r"\b(implement|create|build|add|fix|refactor|write|update)\b", re.IGNORECASE)
_SWITCH_RE = re.compile(r"\[SWITCH_TO\]\s+(\w+)")
_DISCOVERED_RE = re.compile(r"\[DISCOVERED\]\s+(\d+)\s+([^\n]+)")


# ---------------------------
# Discoveries
# ---------------------------

@dataclass
class DiscoveryEntry:
    timestamp: datetime
    importance: int
    content: str

    @property
    def date(self) -> date:
        return self.timestamp.date()

    @property
    def weight(self) -> float:
        return importance_weight(self.importance)

    def render(self) -> str:
        return f"[{self.timestamp.strftime('%Y-%m-%d')}] importance:{self.importance} {self.content}"


def importance_weight(importance: int) -> float:
    return 2.5 ** (importance - 1)


def parse_timestamp(raw: str) -> Optional[datetime]:
    """Parse a discovery date; aware values are converted to naive UTC."""
    text = raw.strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_date(raw: str) -> Optional[date]:
    parsed = parse_timestamp(raw)
    return parsed.date() if parsed is not None else None


def parse_discovery_line(line: str) -> Optional[DiscoveryEntry]:
    m = _DISCOVERY_LINE_RE.match(line.strip())
    if not m:
        return None
    when = parse_timestamp(m.group(1))
    if when is None:
        return None
    return DiscoveryEntry(timestamp=when, importance=int(m.group(2)), content=m.group(3))


def parse_discoveries(log: str) -> List[DiscoveryEntry]:
    entries = []
    for line in log.split("\n"):
        entry = parse_discovery_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


def _compare(a: DiscoveryEntry, b: DiscoveryEntry) -> int:
    if a.importance == 10 and b.importance != 10:
        return -1
    if b.importance == 10 and a.importance != 10:
        return 1
    diff = b.weight - a.weight
    if abs(diff) > WEIGHT_TIE:
        return 1 if diff > 0 else -1
    if a.timestamp != b.timestamp:
        return -1 if a.timestamp > b.timestamp else 1
    return 0


def compact_discoveries(log: str, max_count: int = DEFAULT_MAX_DISCOVERIES) -> str:
    """Keep at most ``max_count`` entries, most important and newest first.

    A log that already holds ``max_count`` or fewer parsable entries is
    returned unchanged.
    """
    entries = parse_discoveries(log)
    if len(entries) <= max_count:
        return log
    ranked = sorted(entries, key=cmp_to_key(_compare))
    return "\n".join(entry.render() for entry in ranked[:max_count])


# ---------------------------
# Conversation
# ---------------------------

@dataclass
class ConversationExchange:
    user_line: str = ""
    assistant_block: str = ""
    system_lines: List[str] = field(default_factory=list)
    raw_lines: List[str] = field(default_factory=list)

    @property
    def raw(self) -> str:
        return "\n".join(self.raw_lines)

    def is_blank(self) -> bool:
        return not any(line.strip() for line in self.raw_lines)


def split_exchanges(history: str) -> List[ConversationExchange]:
    exchanges: List[ConversationExchange] = []
    current = ConversationExchange()
    box: Optional[List[str]] = None

    for line in history.split("\n"):
        if line.startswith(USER_PREFIX) and box is None:
            if not current.is_blank():
                exchanges.append(current)
            current = ConversationExchange(user_line=line, raw_lines=[line])
            continue
        current.raw_lines.append(line)
        if box is not None:
            box.append(line)
            if BOX_BOTTOM in line:
                current.assistant_block = "\n".join(box)
                box = None
        elif BOX_TOP in line:
            box = [line]
        elif line.startswith(SYSTEM_PREFIXES):
            current.system_lines.append(line)

    if box is not None:
        current.assistant_block = "\n".join(box)
    if not current.is_blank():
        exchanges.append(current)
    return exchanges


def _decisions(exchanges: List[ConversationExchange]) -> List[str]:
    out: List[str] = []
    for ex in exchanges:
        request = ex.user_line[len(USER_PREFIX):].strip() if ex.user_line else ""
        if request and _DECISION_RE.search(request):
            out.append(f"User requested: {request}")
        for mode in _SWITCH_RE.findall(ex.assistant_block):
            out.append(f"Mode change to {mode}")
    return out[:MAX_DECISIONS]


def _discoveries(exchanges: List[ConversationExchange]) -> List[str]:
    out: List[str] = []
    for ex in exchanges:
        for importance, text in _DISCOVERED_RE.findall(ex.assistant_block):
            out.append(f"Discovery (importance {importance}): {text.strip()}")
        for line in ex.system_lines:
            lowered = line.lower()
            if "discover" in lowered and "importance" in lowered:
                out.append(line.strip())
    return out[:MAX_DISCOVERIES]


def summarize_exchanges(exchanges: List[ConversationExchange]) -> str:
    lines = ["=== CONVERSATION SUMMARY ===", f"({len(exchanges)} earlier exchanges summarized)"]
    decisions = _decisions(exchanges)
    if decisions:
        lines.append("KEY DECISIONS:")
        lines.extend(f"- {d}" for d in decisions)
    discoveries = _discoveries(exchanges)
    if discoveries:
        lines.append("KEY DISCOVERIES:")
        lines.extend(f"- {d}" for d in discoveries)
    return "\n".join(lines)


def compact_conversation(history: str, max_length: int = DEFAULT_MAX_CONVERSATION_CHARS) -> str:
    """Summarize all but the last three exchanges once ``history`` exceeds ``max_length``."""
    if len(history) <= max_length:
        return history
    exchanges = split_exchanges(history)
    if len(exchanges) <= RECENT_EXCHANGES:
        return history
    older = exchanges[:-RECENT_EXCHANGES]
    recent = exchanges[-RECENT_EXCHANGES:]
    recent_text = "\n".join(ex.raw for ex in recent)
    return f"{summarize_exchanges(older)}\n\n=== RECENT CONVERSATION ===\n{recent_text}"
