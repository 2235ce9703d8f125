"""Game session controller.

Glues the inbound client events to the registry, the round scheduler and
the guess evaluator. Every handler takes the session lock and runs to
completion, so handlers and timer callbacks never interleave.
"""

import logging
import threading
import time
from typing import Callable, Optional

from songquiz.messages import (
    GuessMessage, JoinMessage, KickMessage, PayloadError, SearchMessage, SubmitSongMessage,
)
from songquiz.models import GameState, Phase
from songquiz.services.catalog import SongCatalog
from songquiz.services.games.matching import MatchPolicy
from songquiz.services.games.registry import PRE_GAME_PHASES, SessionRegistry
from songquiz.services.games.scheduler import BackgroundTimers, RoundScheduler, SchedulerSettings
from songquiz.services.games.scoring import GuessKind, ScoringRules, apply_outcome, evaluate_guess


logger = logging.getLogger(__name__)


class GameController:
    def __init__(self, config, emit: Callable, timers=None, catalog: Optional[SongCatalog] = None,
                 clock: Callable[[], float] = time.monotonic, rng=None):
        self.config = config
        self.emit = emit
        self.lock = threading.RLock()
        self.state = GameState()
        self.registry = SessionRegistry(
            self.state,
            max_name_length=int(config.get('MAX_NAME_LENGTH', 20)),
            lock_lobby=bool(config.get('LOCK_LOBBY', True)),
            rng=rng,
        )
        self.settings = SchedulerSettings.from_config(config)
        self.timers = timers if timers is not None else BackgroundTimers(self.lock)
        self.scheduler = RoundScheduler(
            self.state, self.registry, emit, self.timers,
            settings=self.settings, clock=clock, rng=rng,
        )
        self.catalog = catalog if catalog is not None else SongCatalog.from_config(config)
        self.clock = clock
        self.policy = MatchPolicy.from_config(config)
        self.rules = ScoringRules.from_config(config)
        self.max_guess_length = int(config.get('MAX_GUESS_LENGTH', 200))
        self.report_unauthorized = bool(config.get('REPORT_UNAUTHORIZED', False))

    # ---- outbound helpers ----

    def _broadcast_roster(self) -> None:
        self.emit('playerJoined', {
            'players': self.registry.roster(),
            'hostId': self.registry.host_id,
            'submittedPlayers': self.registry.submitted_ids(),
            'phase': self.state.phase,
        })

    def _broadcast_submissions(self) -> None:
        self.emit('songSubmitted', {
            'players': self.registry.roster(),
            'submittedPlayers': self.registry.submitted_ids(),
            'isReady': self.registry.is_ready_to_start(),
        })

    def _reject(self, sid: str, action: str, message: str) -> None:
        self.emit('actionRejected', {'action': action, 'message': message}, to=sid)

    def _host_only(self, sid: str, action: str) -> bool:
        if self.registry.is_host(sid):
            return True
        logger.info(f"[host-only] action={action} sid={sid} host={self.registry.host_id}")
        if self.report_unauthorized:
            self._reject(sid, action, 'Only the host can do that')
        return False

    # ---- inbound events ----

    def join(self, sid: str, data) -> None:
        try:
            msg = JoinMessage.parse(data)
        except PayloadError as exc:
            self.emit('loginError', {'message': str(exc)}, to=sid)
            return
        with self.lock:
            player, reason = self.registry.join(sid, msg.name, msg.color)
            if player is None:
                logger.info(f"[join-rejected] sid={sid} reason={reason}")
                self.emit('loginError', {'message': reason}, to=sid)
                return
            logger.info(f"[join] sid={sid} name={player.name}")
            self.emit('joined', {'playerId': player.id, 'player': player.to_dict()}, to=sid)
            self._broadcast_roster()

    def open_selection(self, sid: str) -> None:
        with self.lock:
            if not self._host_only(sid, 'openSelection'):
                return
            if self.state.phase != Phase.LOBBY:
                return
            self.state.phase = Phase.SELECTION
            self.emit('selectionStarted', {})

    def submit_song(self, sid: str, data) -> None:
        try:
            msg = SubmitSongMessage.parse(data)
        except PayloadError as exc:
            self.emit('submitError', {'message': str(exc)}, to=sid)
            return
        with self.lock:
            track, reason = self.registry.record_submission(sid, msg.to_track())
            if track is None:
                self.emit('submitError', {'message': reason}, to=sid)
                return
            logger.info(f"[song-submitted] sid={sid} queue={len(self.state.queue)}")
            self._broadcast_submissions()

    def start_game(self, sid: str) -> None:
        with self.lock:
            if not self._host_only(sid, 'startGame'):
                return
            if self.state.phase == Phase.LOBBY:
                self._reject(sid, 'startGame', 'Open song selection first')
                return
            if self.state.phase != Phase.SELECTION:
                self._reject(sid, 'startGame', 'The game has already started')
                return
            if not self.state.queue:
                self._reject(sid, 'startGame', 'Nobody has submitted a song yet')
                return
            self.scheduler.start_game()

    def submit_guess(self, sid: str, data) -> None:
        try:
            msg = GuessMessage.parse(data, self.max_guess_length)
        except PayloadError:
            self.emit('guessResult', {'correct': False, 'message': 'Type something first'}, to=sid)
            return
        with self.lock:
            outcome = evaluate_guess(self.state, sid, msg.text, self.clock(), self.policy, self.rules)
            if outcome.kind == GuessKind.UNKNOWN:
                self.emit('guessResult', outcome.result_payload(), to=sid)
                return
            player = self.state.players[sid]
            apply_outcome(self.state, sid, outcome)
            self.emit('guessResult', outcome.result_payload(), to=sid)
            chat = outcome.chat_payload(player)
            if chat is not None:
                self.emit('chatMessage', chat)
            if outcome.correct:
                logger.info(f"[guess-correct] sid={sid} points={outcome.points} round={self.state.round.index}")
                self.scheduler.maybe_end_early()

    def skip_round(self, sid: str) -> None:
        with self.lock:
            if not self._host_only(sid, 'skipRound'):
                return
            self.scheduler.skip()

    def kick_player(self, sid: str, data) -> Optional[str]:
        """Remove another player; returns the kicked id, or None if nothing changed."""
        try:
            msg = KickMessage.parse(data)
        except PayloadError as exc:
            self.emit('error', {'message': str(exc)}, to=sid)
            return None
        with self.lock:
            if not self._host_only(sid, 'kickPlayer'):
                return None
            if msg.target_id == sid or msg.target_id not in self.state.players:
                return None
            self.emit('kicked', {'message': 'You were removed by the host'}, to=msg.target_id)
            self._remove(msg.target_id)
            return msg.target_id

    def play_again(self, sid: str) -> None:
        self._back_to_lobby(sid, 'playAgain', zero_scores=False)

    def reset_game(self, sid: str) -> None:
        self._back_to_lobby(sid, 'resetGame', zero_scores=True)

    def _back_to_lobby(self, sid: str, action: str, zero_scores: bool) -> None:
        with self.lock:
            if not self._host_only(sid, action):
                return
            self.scheduler.cancel_all()
            self.registry.reset_for_lobby(zero_scores=zero_scores)
            logger.info(f"[lobby] action={action} players={len(self.state.players)}")
            self.emit('playAgainStarted', {})
            self._broadcast_roster()

    def disconnect(self, sid: str) -> None:
        with self.lock:
            self._remove(sid)

    def _remove(self, sid: str) -> None:
        player = self.registry.remove(sid)
        if player is None:
            return
        logger.info(f"[leave] sid={sid} name={player.name} host={self.registry.host_id}")
        if not self.state.players:
            self.scheduler.cancel_all()
            self.registry.reset_for_lobby(zero_scores=True)
            return
        if self.state.round_active:
            self.scheduler.maybe_end_early()
        self._broadcast_roster()
        if self.state.phase in PRE_GAME_PHASES:
            self._broadcast_submissions()

    def search_songs(self, sid: str, data) -> None:
        """Catalog passthrough; runs without the session lock."""
        try:
            msg = SearchMessage.parse(data)
        except PayloadError:
            self.emit('searchResults', [], to=sid)
            return
        results = self.catalog.search(msg.query)
        self.emit('searchResults', [t.to_dict() for t in results], to=sid)

    # ---- read side ----

    def snapshot(self) -> dict:
        with self.lock:
            state = self.state
            rnd = state.round
            payload = {
                'phase': state.phase,
                'players': self.registry.roster(),
                'hostId': self.registry.host_id,
                'submittedPlayers': self.registry.submitted_ids(),
                'isReady': self.registry.is_ready_to_start(),
                'trackCount': len(state.queue),
                'durations': self.settings.durations(),
            }
            if state.round_active:
                payload['round'] = {
                    'index': rnd.index,
                    'remaining': rnd.remaining,
                    'hintMask': ''.join(rnd.hint_mask),
                    'submitterName': state.current_track.submitter_name,
                }
            return payload
