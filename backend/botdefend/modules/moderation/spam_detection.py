"""Keyword heuristic for online-gambling ("judol") chat spam.

Spammers dodge naive filters with fancy unicode letters, leetspeak and
letters separated by spaces, so text is folded to plain lowercase ASCII
before keywords are matched.
"""

import logging
import re
from dataclasses import dataclass, field
from string import ascii_lowercase
from typing import Iterable, Optional

from botdefend.core.logging import log_warning

logger = logging.getLogger(__name__)


def _alphabet(first_codepoint: int, letters: str = ascii_lowercase) -> dict[str, str]:
    return {chr(first_codepoint + index): letter for index, letter in enumerate(letters)}


# ============================================
# Character folding
# ============================================

UNICODE_MAP: dict[str, str] = {
    # Small caps (no small-cap x exists)
    **dict(zip("ᴀʙᴄᴅᴇꜰɢʜɪᴊᴋʟᴍɴᴏᴘǫʀꜱᴛᴜᴠᴡʏᴢ", "abcdefghijklmnopqrstuvwyz")),
    **_alphabet(0x1D41A),  # mathematical bold small
    **_alphabet(0x1D400),  # mathematical bold capital
    **_alphabet(0xFF41),  # fullwidth small
    **_alphabet(0x24D0),  # circled small
    **_alphabet(0x1D5EE),  # sans-serif bold small
    **_alphabet(0x1D4EA),  # bold script small
    # Greek and Cyrillic look-alikes
    **dict(zip("αβειοκρ", "abeiokp")),
    **dict(zip("асеорху", "aceopxy")),
    # Symbols
    "@": "a",
    "$": "s",
    "!": "i",
    "|": "l",
}

LEET_MAP: dict[str, str] = {
    "0": "o",
    "1": "i",
    "3": "e",
    "4": "a",
    "5": "s",
    "6": "g",
    "7": "t",
    "8": "b",
    "9": "g",
}

_UNICODE_TABLE = str.maketrans(UNICODE_MAP)
_LEET_TABLE = str.maketrans(LEET_MAP)
_SEPARATORS = re.compile(r"[\s.\-_]+")


def fold_unicode(text: str) -> str:
    """Lowercase and map look-alike characters, keeping separators."""
    return text.lower().translate(_UNICODE_TABLE)


def normalize_unicode(text: str) -> str:
    """Fold look-alikes and drop whitespace, dots, dashes and underscores."""
    return _SEPARATORS.sub("", fold_unicode(text))


def normalize_leet(text: str) -> str:
    """normalize_unicode plus leetspeak digits to letters."""
    return normalize_unicode(text).translate(_LEET_TABLE)


def _compact(keyword: str) -> str:
    return re.sub(r"\s+", "", keyword.lower())


# ============================================
# Keyword sets and patterns
# ============================================

JUDOL_KEYWORDS: tuple[str, ...] = (
    # Slot
    "slot", "gacor", "maxwin", "scatter", "jackpot", "jp", "rtp",
    "pragmatic", "pgsoft", "habanero", "joker", "joker123",
    # Games
    "gates of olympus", "starlight princess", "sweet bonanza",
    "mahjong ways", "fortune tiger", "fortune ox", "wild west gold",
    "sugar rush", "lucky neko", "mega888", "918kiss",
    # Transactions
    "deposit", "depo", "withdraw", "wd", "bonus", "freebet", "freespin",
    "modal receh", "cuan", "wede", "turnover", "cashback",
    # Gambling
    "togel", "toto", "casino", "poker", "domino", "baccarat",
    "sportsbook", "sabung ayam", "tembak ikan",
    # Payment
    "dana", "ovo", "gopay", "pulsa", "qris",
    # Calls to action
    "daftar", "gabung", "join", "cek bio", "link di bio", "dm aja",
    # Descriptors
    "gampang menang", "pasti menang", "anti rungkad", "dijamin cair",
    "lisensi resmi", "terpercaya", "server luar", "rtp live",
    "auto win", "auto jp", "modal kecil", "menang mudah",
    # Site names
    "garudahoki", "mpo777", "dewahoki", "rajahoki", "sultanplay",
    "zeus88", "olympus777", "naga88", "macan88", "tiger88",
    "gacor88", "maxwin777", "slot88", "bet88", "win88",
    "play88", "vip88", "pro88", "mega88", "super88",
    "lucky88", "gold88", "royal88", "king88", "cuan88",
    "jp88", "scatter88", "hoki88", "indo88", "asia88",
)

PROMO_PHRASES: tuple[str, ...] = (
    "pasti menang",
    "auto win",
    "dijamin cair",
    "daftar sekarang",
    "bonus new member",
    "rtp live",
)

# Viewers complaining about gambling spam are not spammers
REPORT_PATTERNS = [
    re.compile(r"ada\s+judol", re.IGNORECASE),
    re.compile(r"judol\s+lagi", re.IGNORECASE),
    re.compile(r"ban\s+judol", re.IGNORECASE),
    re.compile(r"report\s+judol", re.IGNORECASE),
]

CONTACT_PATTERNS = [
    re.compile(r"https?://\S+", re.IGNORECASE),
    re.compile(r"www\.\S+", re.IGNORECASE),
    re.compile(r"bit\.ly/\S+", re.IGNORECASE),
    re.compile(r"t\.me/\S+", re.IGNORECASE),
    re.compile(r"wa\.me/\S+", re.IGNORECASE),
    re.compile(r"linktr\.ee/\S+", re.IGNORECASE),
    re.compile(r"\+62[0-9]{9,12}"),
    re.compile(r"08[0-9]{8,11}"),
    re.compile(r"cek\s*bio", re.IGNORECASE),
    re.compile(r"link\s*di\s*bio", re.IGNORECASE),
    re.compile(r"[a-zA-Z]{3,}(666|777|888|88|99)\b", re.IGNORECASE),
]

# zeus666, garuda777, slot88
SITE_NAME_PATTERN = re.compile(r"\b[a-z]{3,}(?:666|777|888|88|99|123)\b")

KEYWORD_CONTACT_SCORE = 70
SITE_PATTERN_SCORE = 80
PROMO_PHRASE_SCORE = 50
SPACED_KEYWORD_SCORE = 90
SPACED_UNICODE_SCORE = 70
MAX_KEYWORDS = 5

SEVERITY_WEIGHTS = {"low": 20, "medium": 50, "high": 80}


class SpamPattern:
    """Admin-maintained keyword or regex with a severity weight."""

    def __init__(self, name: str, pattern: Optional[re.Pattern] = None, weight: int = 50):
        """Initialize spam pattern.

        Args:
            name: Pattern text, reported as the matched keyword
            pattern: Compiled regex, or None for a plain keyword
            weight: Score added when the pattern matches
        """
        self.name = name
        self.pattern = pattern
        self.weight = weight
        self._compact = _compact(name)

    @classmethod
    def from_remote(cls, pattern: str, is_regex: bool = False, severity: str = "medium") -> Optional["SpamPattern"]:
        """Build a pattern from a remote record; None if the regex is invalid."""
        weight = SEVERITY_WEIGHTS.get(severity, SEVERITY_WEIGHTS["medium"])
        if not is_regex:
            return cls(pattern, weight=weight)
        try:
            return cls(pattern, re.compile(pattern, re.IGNORECASE), weight=weight)
        except re.error as e:
            log_warning(logger, "Skipping invalid spam pattern", pattern=pattern, error=str(e))
            return None

    def matches(self, text: str, normalized: str, normalized_leet: str) -> bool:
        """Check the raw text (regex) or the normalized forms (keyword)."""
        if self.pattern is not None:
            return bool(self.pattern.search(text))
        if not self._compact:
            return False
        return self._compact in normalized or self._compact in normalized_leet


@dataclass(frozen=True)
class HeuristicResult:
    """Score and matched keywords produced by the heuristic."""

    score: int
    keywords: tuple[str, ...] = field(default_factory=tuple)


def has_contact_info(text: str) -> bool:
    """True if the text carries a link, phone number or "check bio" lure."""
    return any(pattern.search(text) for pattern in CONTACT_PATTERNS)


def is_report(text: str) -> bool:
    return any(pattern.search(text) for pattern in REPORT_PATTERNS)


class JudolDetector:
    """Scores chat text for gambling promotion.

    Scoring:
        - keyword together with contact info: +70
        - site-name pattern (letters followed by 88/777/...): +80
        - promo phrase: +50
        - each matching admin pattern: its severity weight

    Letters spelled out one by one ("s l o t") short-circuit to 90 when
    they spell a keyword, or 70 when written in fancy unicode.
    """

    def __init__(
        self,
        custom_words: Iterable[str] = (),
        patterns: Iterable[SpamPattern] = (),
    ):
        """Initialize the detector.

        Args:
            custom_words: Extra keywords merged into the base set
            patterns: Admin-maintained patterns scored by severity
        """
        words = [w.strip().lower() for w in custom_words if isinstance(w, str) and w.strip()]
        # Base keywords first, custom words appended in order, no duplicates
        self.keywords: tuple[str, ...] = tuple(dict.fromkeys([*JUDOL_KEYWORDS, *words]))
        self.patterns = list(patterns)

    def detect_spaced(self, text: str) -> Optional[HeuristicResult]:
        """Detect letters separated by spaces, e.g. "ꜱ ʟ ᴏ ᴛ 8 8"."""
        words = text.split()
        singles = [w for w in words if len(w) == 1]
        if len(words) < 4 or len(singles) / len(words) < 0.5:
            return None

        extracted = "".join(singles)
        joined = normalize_leet(extracted)

        for keyword in self.keywords:
            compact = _compact(keyword)
            if compact and compact in joined:
                return HeuristicResult(SPACED_KEYWORD_SCORE, (f"spaced:{joined}",))

        if len(extracted) >= 5 and any(c in UNICODE_MAP for c in text):
            return HeuristicResult(SPACED_UNICODE_SCORE, (f"spaced:{joined}",))

        return None

    def detect(self, text: str) -> HeuristicResult:
        """Score a message.

        Returns:
            HeuristicResult with score in [0, 100] and at most five keywords
        """
        if not text or is_report(text):
            return HeuristicResult(0)

        spaced = self.detect_spaced(text)
        if spaced is not None:
            return spaced

        normalized = normalize_unicode(text)
        normalized_leet = normalize_leet(text)

        found: list[str] = []
        for keyword in self.keywords:
            compact = _compact(keyword)
            if compact and (compact in normalized or compact in normalized_leet):
                found.append(keyword)

        score = 0
        if found and has_contact_info(text):
            score += KEYWORD_CONTACT_SCORE

        if SITE_NAME_PATTERN.search(fold_unicode(text)):
            score += SITE_PATTERN_SCORE
            found.append("site_pattern")

        if any(_compact(phrase) in normalized for phrase in PROMO_PHRASES):
            score += PROMO_PHRASE_SCORE
            found.append("promo_phrase")

        for pattern in self.patterns:
            if pattern.matches(text, normalized, normalized_leet):
                score += pattern.weight
                if pattern.name not in found:
                    found.append(pattern.name)

        return HeuristicResult(
            score=max(0, min(score, 100)),
            keywords=tuple(found[:MAX_KEYWORDS]),
        )
