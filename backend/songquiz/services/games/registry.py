import logging
import random
from typing import List, Optional, Tuple

from songquiz.models import DEFAULT_COLOR, GameState, Phase, Player, RoundState, Track


logger = logging.getLogger(__name__)

PRE_GAME_PHASES = (Phase.LOBBY, Phase.SELECTION)


class SessionRegistry:
    """Players, host identity and the submitted-song queue of one session."""

    def __init__(self, state: GameState, max_name_length: int = 20, lock_lobby: bool = True, rng=None):
        self.state = state
        self.max_name_length = max_name_length
        self.lock_lobby = lock_lobby
        self.rng = rng or random.Random()

    # ---- membership ----

    @property
    def host_id(self) -> Optional[str]:
        # dicts keep insertion order, so the first key is the oldest surviving player
        return next(iter(self.state.players), None)

    def is_host(self, player_id) -> bool:
        return player_id is not None and player_id == self.host_id

    def get(self, player_id) -> Optional[Player]:
        return self.state.players.get(player_id)

    def join(self, player_id: str, name: str, color: str = DEFAULT_COLOR) -> Tuple[Optional[Player], Optional[str]]:
        """Add a player; returns (player, None) or (None, reason)."""
        if player_id in self.state.players:
            return None, 'You have already joined'
        if self.lock_lobby and self.state.phase != Phase.LOBBY:
            return None, 'A game is already in progress, wait for the next lobby'
        display = ' '.join((name or '').split())
        if not display:
            display = f'Player {player_id[:4]}'
        if len(display) > self.max_name_length:
            return None, f'Name must be at most {self.max_name_length} characters'
        wanted = display.casefold()
        if any(p.name.casefold() == wanted for p in self.state.players.values()):
            return None, 'That name is already taken'
        player = Player(id=player_id, name=display, color=color or DEFAULT_COLOR)
        self.state.players[player_id] = player
        return player, None

    def remove(self, player_id) -> Optional[Player]:
        """Drop a player and every derived membership; host is recomputed implicitly."""
        player = self.state.players.pop(player_id, None)
        if player is None:
            return None
        self.state.round.winners.discard(player_id)
        if self.state.phase in PRE_GAME_PHASES:
            self.state.queue = [t for t in self.state.queue if t.submitter_id != player_id]
        return player

    def roster(self) -> List[dict]:
        return [p.to_dict() for p in self.state.players.values()]

    # ---- submissions ----

    def submitted_ids(self) -> List[str]:
        return [p.id for p in self.state.players.values() if p.has_submitted]

    def record_submission(self, player_id, track: Track) -> Tuple[Optional[Track], Optional[str]]:
        """Queue a player's song, replacing any earlier pick from the same lobby cycle."""
        player = self.state.players.get(player_id)
        if player is None:
            return None, 'Join the game first'
        if self.state.phase not in PRE_GAME_PHASES:
            return None, 'Songs can only be submitted before the game starts'
        if track is None or not (track.title and track.artist and track.preview_url):
            return None, 'Song needs a title, artist and preview'
        track.submitter_id = player.id
        track.submitter_name = player.name
        track.was_guessed = False
        track.correct_guessers = []
        self.state.queue = [t for t in self.state.queue if t.submitter_id != player.id]
        self.state.queue.append(track)
        player.has_submitted = True
        return track, None

    def is_ready_to_start(self) -> bool:
        count = len(self.state.players)
        return count > 0 and len(self.submitted_ids()) == count

    def shuffle_queue(self) -> None:
        # random.shuffle is a Fisher-Yates shuffle: every permutation is equally likely
        self.rng.shuffle(self.state.queue)

    # ---- lifecycle ----

    def reset_for_lobby(self, zero_scores: bool = False) -> None:
        state = self.state
        state.queue = []
        state.phase = Phase.LOBBY
        state.current_index = 0
        state.round = RoundState()
        for player in state.players.values():
            player.has_submitted = False
            if zero_scores:
                player.score = 0
