import math
import re
from dataclasses import dataclass


_ANNOTATION_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]|\{[^}]*\}")
_DASH_SUFFIX_RE = re.compile(r"\s+[-–—]\s.*$")
_PUNCT_RE = re.compile(r"[^\w\s]|_")


def normalize(text) -> str:
    """Reduce a title, artist or guess to a comparable form.

    Lowercases, drops bracketed annotations ("(Remastered 2011)", "[Live]"),
    drops a trailing dash suffix ("- Radio Edit"), strips punctuation and
    collapses whitespace. Safe on None and empty input.
    """
    if not text:
        return ''
    cleaned = str(text).lower()
    cleaned = _ANNOTATION_RE.sub(' ', cleaned)
    cleaned = _DASH_SUFFIX_RE.sub('', cleaned)
    cleaned = _PUNCT_RE.sub('', cleaned)
    return ' '.join(cleaned.split())


def _plain(text) -> str:
    # Punctuation-only cleanup, used when annotations make up the whole title
    if not text:
        return ''
    return ' '.join(_PUNCT_RE.sub('', str(text).lower()).split())


def comparable_title(title) -> str:
    return normalize(title) or _plain(title)


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance: single-character inserts, deletes and substitutions."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


@dataclass(frozen=True)
class MatchPolicy:
    typo_floor: int = 2
    typo_tolerance: float = 0.3
    accept_artist: bool = False
    min_partial_length: int = 3

    @classmethod
    def from_config(cls, config) -> 'MatchPolicy':
        return cls(
            typo_floor=int(config.get('TYPO_FLOOR', 2)),
            typo_tolerance=float(config.get('TYPO_TOLERANCE', 0.3)),
            accept_artist=bool(config.get('ACCEPT_ARTIST_GUESS', False)),
        )

    def allowed_typos(self, normalized_title: str) -> int:
        return max(self.typo_floor, math.floor(len(normalized_title) * self.typo_tolerance))


def _contains_either_way(guess: str, target: str, min_length: int) -> bool:
    if len(guess) < min_length:
        return False
    return guess in target or target in guess


def match_title(guess, title, policy: MatchPolicy = MatchPolicy()) -> bool:
    """True when the guess names the title under the three matching rules:
    exact, partial/over-complete containment, or within the typo allowance."""
    g = normalize(guess)
    t = comparable_title(title)
    if not g or not t:
        return False
    if g == t:
        return True
    if _contains_either_way(g, t, policy.min_partial_length):
        return True
    return edit_distance(g, t) <= policy.allowed_typos(t)


def match_artist(guess, artist, policy: MatchPolicy = MatchPolicy()) -> bool:
    g = normalize(guess)
    a = comparable_title(artist)
    if not g or not a:
        return False
    return g == a or _contains_either_way(g, a, policy.min_partial_length)


def reproduces_title(text, title, policy: MatchPolicy = MatchPolicy()) -> bool:
    """Whether a chat line gives the answer away."""
    return match_title(text, title, policy)
