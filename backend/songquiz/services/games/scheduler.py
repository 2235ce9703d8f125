import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from songquiz.models import GameState, Phase, RoundState
from .registry import SessionRegistry


logger = logging.getLogger(__name__)

HINT_PLACEHOLDER = '_'


@dataclass(frozen=True)
class SchedulerSettings:
    round_duration: int = 30
    preroll: float = 3
    cooldown: float = 5
    early_end_grace: float = 1
    hint_window: int = 20
    hint_interval: int = 5

    @classmethod
    def from_config(cls, config) -> 'SchedulerSettings':
        return cls(
            round_duration=int(config.get('ROUND_DURATION_SEC', 30)),
            preroll=float(config.get('PREROLL_DURATION_SEC', 3)),
            cooldown=float(config.get('ROUND_COOLDOWN_SEC', 5)),
            early_end_grace=float(config.get('EARLY_END_GRACE_SEC', 1)),
            hint_window=int(config.get('HINT_WINDOW_SEC', 20)),
            hint_interval=int(config.get('HINT_INTERVAL_SEC', 5)),
        )

    def durations(self) -> dict:
        return {
            'preroll': self.preroll,
            'round': self.round_duration,
            'cooldown': self.cooldown,
        }


class TimerHandle:
    def __init__(self, name: str, delay: float):
        self.name = name
        self.delay = delay
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class BackgroundTimers:
    """One-shot timers run as Socket.IO background tasks.

    Callbacks run while holding the session lock, so they never interleave
    with socket handlers mutating the same state.
    """

    def __init__(self, lock, start_task: Optional[Callable] = None, sleep: Optional[Callable] = None):
        if start_task is None or sleep is None:
            from songquiz import socketio
            start_task = start_task or socketio.start_background_task
            sleep = sleep or socketio.sleep
        self.lock = lock
        self._start_task = start_task
        self._sleep = sleep

    def call_later(self, delay: float, callback: Callable[[], None], name: str = 'timer') -> TimerHandle:
        handle = TimerHandle(name, delay)

        def _runner():
            self._sleep(delay)
            if handle.cancelled:
                return
            with self.lock:
                if handle.cancelled:
                    return
                handle.fired = True
                try:
                    callback()
                except Exception:
                    logger.exception(f"[timer-error] timer={name} failed")

        self._start_task(_runner)
        return handle


def build_hint_mask(title: str, rng=None) -> Tuple[List[str], List[int]]:
    """Mask every letter and digit; return the mask and a shuffled reveal order."""
    rng = rng or random
    mask = []
    hidden = []
    for pos, char in enumerate(title or ''):
        if char.isalnum():
            mask.append(HINT_PLACEHOLDER)
            hidden.append(pos)
        else:
            mask.append(char)
    rng.shuffle(hidden)
    return mask, hidden


class RoundScheduler:
    """Drives the timed lifecycle of a game: pre-roll, rounds, results.

    Every scheduled callback remembers the state generation it was created
    under and no-ops if the game has since moved on.
    """

    def __init__(self, state: GameState, registry: SessionRegistry, emit: Callable, timers,
                 settings: SchedulerSettings = SchedulerSettings(), clock: Callable[[], float] = time.monotonic,
                 rng=None):
        self.state = state
        self.registry = registry
        self.emit = emit
        self.timers = timers
        self.settings = settings
        self.clock = clock
        self.rng = rng or random.Random()

    # ---- timers ----

    def _schedule(self, delay: float, callback: Callable[[], None], name: str) -> TimerHandle:
        expected = self.state.generation
        round_idx = self.state.current_index

        def _guarded():
            logger.debug(f"[timer-fire] timer={name} round={round_idx} generation={expected}")
            if self.state.generation != expected:
                logger.info(
                    f"[timer-abort] timer={name} expected_generation={expected} actual_generation={self.state.generation}"
                )
                return
            callback()

        logger.debug(f"[timer-set] timer={name} round={round_idx} delay={delay}s generation={expected}")
        return self.timers.call_later(delay, _guarded, name=name)

    def _bump_generation(self) -> None:
        self.state.generation += 1

    def cancel_all(self) -> None:
        """Cancel every pending timer and invalidate any that already fired."""
        for handle in (self.state.round.timer, self.state.pending_timer):
            if handle is not None:
                handle.cancel()
        self.state.round.timer = None
        self.state.pending_timer = None
        self._bump_generation()

    # ---- game lifecycle ----

    def start_game(self) -> None:
        state = self.state
        self.cancel_all()
        self.registry.shuffle_queue()
        state.phase = Phase.PLAYING
        state.current_index = 0
        state.round = RoundState()
        logger.info(f"[game-start] tracks={len(state.queue)} players={len(state.players)}")
        self.emit('gameStarted', {'trackCount': len(state.queue)})
        state.pending_timer = self._schedule(self.settings.preroll, self.begin_round, 'preroll')

    def begin_round(self) -> None:
        state = self.state
        state.pending_timer = None
        if state.phase != Phase.PLAYING:
            return
        track = state.current_track
        if track is None:
            self.finish_game()
            return
        self._bump_generation()
        mask, order = build_hint_mask(track.title, self.rng)
        state.round = RoundState(
            index=state.current_index,
            generation=state.generation,
            started_at=self.clock(),
            active=True,
            remaining=self.settings.round_duration,
            hint_mask=mask,
            reveal_order=order,
        )
        track.was_guessed = False
        track.correct_guessers = []
        logger.info(f"[round-start] round={state.current_index} of={len(state.queue)} dj={track.submitter_name}")
        self.emit('playTrack', {
            'roundIndex': state.current_index,
            'totalTracks': len(state.queue),
            'countdown': self.settings.round_duration,
            'previewUrl': track.preview_url,
            'submitterName': track.submitter_name,
            'hintMask': ''.join(mask),
        })
        state.round.timer = self._schedule(1, self.tick, 'tick')

    def tick(self) -> None:
        rnd = self.state.round
        if not self.state.round_active:
            return
        rnd.timer = None
        rnd.remaining -= 1
        self.emit('countdown', max(0, rnd.remaining))
        if rnd.remaining <= 0:
            self.end_round()
            return
        if self.should_reveal(rnd.remaining):
            self.reveal_next_hint()
        # An early-end timer may already own the round
        if rnd.ending:
            return
        rnd.timer = self._schedule(1, self.tick, 'tick')

    def should_reveal(self, remaining: int) -> bool:
        interval = self.settings.hint_interval
        return 0 < remaining <= self.settings.hint_window and interval > 0 and remaining % interval == 0

    def reveal_next_hint(self) -> Optional[Tuple[int, str]]:
        rnd = self.state.round
        track = self.state.current_track
        if not rnd.reveal_order or track is None:
            return None
        pos = rnd.reveal_order.pop()
        char = track.title[pos]
        rnd.hint_mask[pos] = char
        self.emit('revealHint', {'position': pos, 'character': char})
        return pos, char

    def eligible_guessers(self) -> List[str]:
        track = self.state.current_track
        submitter = track.submitter_id if track else None
        return [pid for pid in self.state.players if pid != submitter]

    def maybe_end_early(self) -> bool:
        """End the round shortly once every eligible guesser has it right."""
        rnd = self.state.round
        if not self.state.round_active or rnd.ending:
            return False
        eligible = self.eligible_guessers()
        if not eligible or not all(pid in rnd.winners for pid in eligible):
            return False
        if rnd.timer is not None:
            rnd.timer.cancel()
        rnd.ending = True
        logger.info(f"[round-early-end] round={rnd.index} winners={len(rnd.winners)}")
        rnd.timer = self._schedule(self.settings.early_end_grace, self.end_round, 'early-end')
        return True

    def skip(self) -> bool:
        if not self.state.round_active:
            return False
        logger.info(f"[round-skip] round={self.state.round.index}")
        self.end_round()
        return True

    def end_round(self) -> None:
        state = self.state
        rnd = state.round
        track = state.current_track
        if not state.round_active or track is None:
            return
        self.cancel_all()
        rnd.active = False
        rnd.ending = False
        logger.info(f"[round-end] round={rnd.index} winners={len(rnd.winners)} dj_bonus={rnd.dj_bonus}")
        self.emit('roundEnded', {
            'roundIndex': rnd.index,
            'track': track.to_answer(),
            'submitterName': track.submitter_name,
            'winners': [state.players[pid].name for pid in track.correct_guessers if pid in state.players],
            'djBonus': rnd.dj_bonus,
            'scores': self.registry.roster(),
        })
        state.current_index += 1
        if state.current_track is None:
            self.finish_game()
            return
        state.pending_timer = self._schedule(self.settings.cooldown, self.begin_round, 'cooldown')

    def finish_game(self) -> None:
        state = self.state
        self.cancel_all()
        state.round.active = False
        state.phase = Phase.RESULTS
        final = sorted(self.registry.roster(), key=lambda p: p['score'], reverse=True)
        logger.info(f"[game-finished] rounds={len(state.queue)} leader={final[0]['name'] if final else None}")
        self.emit('gameFinished', {'scores': final})
