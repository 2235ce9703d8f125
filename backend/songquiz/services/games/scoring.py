import math
from dataclasses import dataclass
from typing import Optional

from songquiz.models import GameState, Player
from .matching import MatchPolicy, match_artist, match_title, reproduces_title


class GuessKind:
    UNKNOWN = 'unknown'
    CHAT = 'chat'
    WINNER_CHAT = 'winner-chat'
    SPOILER = 'spoiler'
    DJ_CHAT = 'dj-chat'
    SELF_SPOILER = 'self-spoiler'
    ARTIST_ONLY = 'artist-only'
    CORRECT = 'correct'
    WRONG = 'wrong'


@dataclass(frozen=True)
class ScoringRules:
    base_points: int = 30
    floor_points: int = 5
    dj_bonus: int = 3

    @classmethod
    def from_config(cls, config) -> 'ScoringRules':
        return cls(
            base_points=int(config.get('BASE_POINTS', 30)),
            floor_points=int(config.get('FLOOR_POINTS', 5)),
            dj_bonus=int(config.get('DJ_BONUS_POINTS', 3)),
        )


def compute_points(elapsed_seconds: float, base_points: int = 30, floor_points: int = 5) -> int:
    """Faster answers score more; every correct answer earns at least the floor."""
    elapsed = max(0.0, float(elapsed_seconds or 0))
    return max(floor_points, int(math.ceil(base_points - elapsed)))


@dataclass
class GuessOutcome:
    kind: str
    text: str = ''
    points: int = 0
    dj_points: int = 0
    message: Optional[str] = None

    @property
    def correct(self) -> bool:
        return self.kind == GuessKind.CORRECT

    def result_payload(self) -> dict:
        """Private acknowledgement for the guesser (`guessResult`)."""
        if self.kind == GuessKind.CORRECT:
            return {'correct': True, 'points': self.points}
        if self.kind == GuessKind.WINNER_CHAT:
            return {'correct': True, 'points': 0, 'silent': True}
        if self.kind == GuessKind.SPOILER:
            return {'correct': True, 'points': 0, 'message': self.message}
        if self.kind in (GuessKind.CHAT, GuessKind.DJ_CHAT):
            return {'correct': False, 'silent': True}
        payload = {'correct': False}
        if self.message:
            payload['message'] = self.message
        return payload

    def chat_payload(self, player: Player) -> Optional[dict]:
        """Broadcast line for everyone (`chatMessage`), or None if nothing is shown."""
        if self.kind == GuessKind.CORRECT:
            text = 'Guessed the answer!'
        elif self.kind in (GuessKind.CHAT, GuessKind.WINNER_CHAT, GuessKind.DJ_CHAT, GuessKind.WRONG):
            text = self.text
        else:
            return None
        return {'name': player.name, 'text': text, 'type': self.kind, 'color': player.color}


def evaluate_guess(state: GameState, player_id: str, text: str, now: float,
                   policy: MatchPolicy = MatchPolicy(), rules: ScoringRules = ScoringRules()) -> GuessOutcome:
    """Classify a guess. The first applicable rule wins; nothing is mutated here."""
    player = state.players.get(player_id)
    if player is None:
        return GuessOutcome(GuessKind.UNKNOWN, text, message='Join the game first')

    track = state.current_track
    if not state.round_active or track is None:
        return GuessOutcome(GuessKind.CHAT, text)

    if player_id in state.round.winners:
        if reproduces_title(text, track.title, policy):
            return GuessOutcome(GuessKind.SPOILER, text, message="Don't spoil the answer!")
        return GuessOutcome(GuessKind.WINNER_CHAT, text)

    if player_id == track.submitter_id:
        if reproduces_title(text, track.title, policy):
            return GuessOutcome(GuessKind.SELF_SPOILER, text, message="That's your song, don't give it away!")
        return GuessOutcome(GuessKind.DJ_CHAT, text)

    title_hit = match_title(text, track.title, policy)
    if not title_hit and match_artist(text, track.artist, policy):
        if not policy.accept_artist:
            return GuessOutcome(GuessKind.ARTIST_ONLY, text, message="That's the artist, now name the song!")
        title_hit = True

    if title_hit:
        elapsed = now - (state.round.started_at or now)
        dj_points = rules.dj_bonus if track.submitter_id in state.players else 0
        return GuessOutcome(
            GuessKind.CORRECT, text,
            points=compute_points(elapsed, rules.base_points, rules.floor_points),
            dj_points=dj_points,
        )
    return GuessOutcome(GuessKind.WRONG, text)


def apply_outcome(state: GameState, player_id: str, outcome: GuessOutcome) -> None:
    """Credit a correct guess to the guesser and the round's dj."""
    if not outcome.correct:
        return
    track = state.current_track
    player = state.players.get(player_id)
    if track is None or player is None or player_id in state.round.winners:
        return
    player.score += outcome.points
    state.round.winners.add(player_id)
    track.was_guessed = True
    track.correct_guessers.append(player_id)
    dj = state.players.get(track.submitter_id)
    if dj is not None and outcome.dj_points:
        dj.score += outcome.dj_points
        state.round.dj_bonus += outcome.dj_points
