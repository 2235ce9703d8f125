from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set


class Phase:
    LOBBY = 'lobby'
    SELECTION = 'selection'
    PLAYING = 'playing'
    RESULTS = 'results'


DEFAULT_COLOR = '#888888'


@dataclass
class Player:
    id: str
    name: str
    color: str = DEFAULT_COLOR
    score: int = 0
    has_submitted: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'score': self.score,
            'hasSubmitted': self.has_submitted,
        }


@dataclass
class Track:
    title: str
    artist: str
    preview_url: str
    artwork_url: str = ''
    submitter_id: Optional[str] = None
    submitter_name: Optional[str] = None
    was_guessed: bool = False
    correct_guessers: List[str] = field(default_factory=list)

    def to_answer(self):
        return {
            'title': self.title,
            'artist': self.artist,
            'artworkUrl': self.artwork_url,
        }


@dataclass
class RoundState:
    """Per-round bookkeeping; replaced wholesale at every round start."""
    index: int = 0
    generation: int = 0
    started_at: Optional[float] = None
    active: bool = False
    ending: bool = False
    remaining: int = 0
    winners: Set[str] = field(default_factory=set)
    hint_mask: List[str] = field(default_factory=list)
    reveal_order: List[int] = field(default_factory=list)
    dj_bonus: int = 0
    timer: object = None


@dataclass
class GameState:
    """The single authoritative state of one game session."""
    players: Dict[str, Player] = field(default_factory=dict)
    queue: List[Track] = field(default_factory=list)
    phase: str = Phase.LOBBY
    round: RoundState = field(default_factory=RoundState)
    current_index: int = 0
    # Bumped whenever a round starts, ends or the game is reset; timers
    # scheduled under an older generation are stale.
    generation: int = 0
    pending_timer: object = None

    @property
    def current_track(self) -> Optional[Track]:
        if 0 <= self.current_index < len(self.queue):
            return self.queue[self.current_index]
        return None

    @property
    def round_active(self) -> bool:
        return self.phase == Phase.PLAYING and self.round.active and self.current_track is not None
