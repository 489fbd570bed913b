"""
Command grammar for PlanBot.

    command := PREFIX NAME (TOKEN)*
    TOKEN   := DATE | TIME | WORD

Tokens are split on whitespace and classified on their own, so "/when 19:30
2025-10-30" and "/when 2025-10-30 19:30" parse alike.
"""
import re
from datetime import datetime
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})([ap]m)?$", re.IGNORECASE)


class TokenType(str, Enum):
    DATE = "date"
    TIME = "time"
    WORD = "word"


class Token(NamedTuple):
    type: TokenType
    text: str


class ParsedCommand(NamedTuple):
    name: str
    args: List[Token]

    @property
    def words(self) -> List[str]:
        return [t.text for t in self.args]

    @property
    def rest(self) -> str:
        return " ".join(self.words)


def _is_date(text: str) -> bool:
    if not DATE_PATTERN.match(text):
        return False
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        return False
    return True


def _is_time(text: str) -> bool:
    match = TIME_PATTERN.match(text)
    if not match:
        return False
    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    if minute > 59:
        return False
    if meridiem:
        return 1 <= hour <= 12
    return hour <= 23


def classify(text: str) -> Token:
    if _is_date(text):
        return Token(TokenType.DATE, text)
    if _is_time(text):
        return Token(TokenType.TIME, text.lower())
    return Token(TokenType.WORD, text)


def tokenize(text: str) -> List[Token]:
    return [classify(part) for part in text.split()]


def parse_command(text: str, prefixes: Sequence[str] = ("/", "!")) -> Optional[ParsedCommand]:
    """Parse chat text into a command, or None if it does not start with a prefix."""
    stripped = (text or "").strip()
    prefix = next((p for p in prefixes if p and stripped.startswith(p)), None)
    if prefix is None:
        return None
    parts = stripped[len(prefix):].split()
    if not parts:
        return ParsedCommand("", [])
    return ParsedCommand(parts[0].lower(), [classify(part) for part in parts[1:]])


def extract_date_time(tokens: Sequence[Token]) -> Tuple[Optional[str], Optional[str]]:
    """First DATE and first TIME token, wherever they appear."""
    date = next((t.text for t in tokens if t.type == TokenType.DATE), None)
    time = next((t.text for t in tokens if t.type == TokenType.TIME), None)
    return date, time
