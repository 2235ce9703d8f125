import random

from songquiz.games import GameController
from songquiz.models import Phase
from songquiz.services.games.scheduler import HINT_PLACEHOLDER, build_hint_mask

from conftest import FakeCatalog, config_dict


def _start(controller, timers, host='sid-alice'):
    controller.start_game(host)
    timers.advance(3)
    return controller.state.current_track


def _guessers(controller):
    track = controller.state.current_track
    return [sid for sid in controller.state.players if sid != track.submitter_id]


def test_build_hint_mask_hides_only_letters_and_digits():
    mask, order = build_hint_mask("Don't Stop 2!", random.Random(1))
    assert ''.join(mask) == "___'_ ____ _!"
    assert sorted(order) == [0, 1, 2, 4, 6, 7, 8, 9, 11]


def test_start_game_preroll_then_first_round(controller, events, timers, make_game):
    make_game(('Alice', 'Bob'))
    controller.start_game('sid-alice')
    assert events.last('gameStarted') == {'trackCount': 2}
    assert controller.state.phase == Phase.PLAYING
    assert events.named('playTrack') == []
    timers.advance(2.9)
    assert events.named('playTrack') == []
    timers.advance(0.1)
    play = events.last('playTrack')
    track = controller.state.current_track
    assert play['roundIndex'] == 0
    assert play['totalTracks'] == 2
    assert play['countdown'] == 30
    assert play['previewUrl'] == track.preview_url
    assert play['submitterName'] == track.submitter_name
    assert len(play['hintMask']) == len(track.title)
    assert not any(c.isalnum() for c in play['hintMask'])


def test_full_round_counts_down_and_reveals_four_hints(controller, events, timers, make_game):
    make_game(('Alice', 'Bob'))
    track = _start(controller, timers)
    timers.advance(30)
    assert events.named('countdown') == list(range(29, -1, -1))
    reveals = events.named('revealHint')
    assert len(reveals) == 4
    for reveal in reveals:
        assert track.title[reveal['position']] == reveal['character']
        assert reveal['character'] != HINT_PLACEHOLDER
    ended = events.last('roundEnded')
    assert ended['track']['title'] == track.title
    assert ended['submitterName'] == track.submitter_name
    assert ended['roundIndex'] == 0
    assert controller.state.current_index == 1


def test_next_round_starts_after_cooldown(controller, events, timers, make_game):
    make_game(('Alice', 'Bob'))
    _start(controller, timers)
    timers.advance(30)
    timers.advance(4.9)
    assert len(events.named('playTrack')) == 1
    timers.advance(0.1)
    assert events.last('playTrack')['roundIndex'] == 1


def test_all_guessers_correct_ends_round_after_grace(controller, events, timers, make_game):
    make_game(('Alice', 'Bob', 'Cara', 'Dan', 'Eve'), songs=3)
    assert len(controller.state.queue) == 3
    track = _start(controller, timers)
    timers.advance(2)
    guessers = _guessers(controller)
    assert len(guessers) == 4
    for sid in guessers:
        controller.submit_guess(sid, {'text': track.title})
    assert 'early-end' in timers.pending_names()
    assert 'tick' not in timers.pending_names()
    assert events.named('roundEnded') == []
    timers.advance(1)
    ended = events.last('roundEnded')
    assert ended is not None
    assert len(ended['winners']) == 4
    assert ended['djBonus'] == 12
    assert events.named('countdown') == [29, 28]
    assert controller.state.players[track.submitter_id].score == 12


def test_points_depend_on_elapsed_time(controller, events, timers, make_game):
    make_game(('Alice', 'Bob', 'Cara'))
    track = _start(controller, timers)
    first, second = _guessers(controller)
    timers.advance(4)
    controller.submit_guess(first, {'text': track.title})
    timers.advance(6)
    controller.submit_guess(second, {'text': track.title})
    assert events.named('guessResult', to=first)[-1] == {'correct': True, 'points': 26}
    assert events.named('guessResult', to=second)[-1] == {'correct': True, 'points': 20}
    assert controller.state.players[first].score > controller.state.players[second].score


def test_host_skip_ends_round_and_stale_tick_is_ignored(controller, events, timers, make_game):
    make_game(('Alice', 'Bob'))
    _start(controller, timers)
    timers.advance(2)
    stale = [entry[3] for entry in timers._queue if entry[2].pending and entry[2].name == 'tick']
    assert len(stale) == 1

    controller.skip_round('sid-bob')
    assert events.named('roundEnded') == []

    controller.skip_round('sid-alice')
    assert len(events.named('roundEnded')) == 1
    countdowns = len(events.named('countdown'))
    stale[0]()
    assert len(events.named('countdown')) == countdowns

    timers.advance(4)
    assert len(events.named('countdown')) == countdowns
    timers.advance(1)
    assert events.last('playTrack')['roundIndex'] == 1


def test_last_round_finishes_game(controller, events, timers, make_game):
    make_game(('Alice', 'Bob'))
    _start(controller, timers)
    controller.skip_round('sid-alice')
    timers.advance(5)
    track = controller.state.current_track
    guesser = _guessers(controller)[0]
    controller.submit_guess(guesser, {'text': track.title})
    controller.skip_round('sid-alice')
    finished = events.last('gameFinished')
    assert finished is not None
    assert controller.state.phase == Phase.RESULTS
    assert finished['scores'][0]['id'] == guesser
    assert [p['score'] for p in finished['scores']] == sorted(
        (p['score'] for p in finished['scores']), reverse=True)
    assert timers.pending_names() == []


def test_begin_round_with_exhausted_queue_finishes(controller, events, make_game):
    make_game(('Alice', 'Bob'))
    controller.state.phase = Phase.PLAYING
    controller.state.current_index = len(controller.state.queue)
    controller.scheduler.begin_round()
    assert events.last('gameFinished') is not None
    assert controller.state.phase == Phase.RESULTS


def test_disconnect_of_last_pending_guesser_ends_round_early(controller, events, timers, make_game):
    make_game(('Alice', 'Bob', 'Cara'))
    track = _start(controller, timers)
    first, second = _guessers(controller)
    controller.submit_guess(first, {'text': track.title})
    assert 'early-end' not in timers.pending_names()
    controller.disconnect(second)
    assert 'early-end' in timers.pending_names()
    timers.advance(1)
    assert events.last('roundEnded') is not None


def test_host_leaving_mid_round_promotes_next_player(controller, events, timers, make_game):
    make_game(('Alice', 'Bob', 'Cara'))
    _start(controller, timers)
    controller.disconnect('sid-alice')
    assert events.last('playerJoined')['hostId'] == 'sid-bob'
    assert controller.state.round_active
    controller.skip_round('sid-bob')
    assert events.last('roundEnded') is not None


def test_everyone_leaving_resets_session(controller, timers, make_game):
    ids = make_game(('Alice', 'Bob'))
    _start(controller, timers)
    for sid in ids:
        controller.disconnect(sid)
    assert controller.state.phase == Phase.LOBBY
    assert controller.state.queue == []
    assert timers.pending_names() == []


def test_play_again_cancels_timers_and_keeps_scores(controller, events, timers, make_game):
    make_game(('Alice', 'Bob'))
    track = _start(controller, timers)
    guesser = _guessers(controller)[0]
    controller.submit_guess(guesser, {'text': track.title})
    score = controller.state.players[guesser].score
    assert score > 0

    controller.play_again('sid-bob')
    assert events.named('playAgainStarted') == []

    controller.play_again('sid-alice')
    assert events.named('playAgainStarted') == [{}]
    assert controller.state.phase == Phase.LOBBY
    assert controller.state.players[guesser].score == score
    countdowns = len(events.named('countdown'))
    timers.advance(60)
    assert len(events.named('countdown')) == countdowns

    controller.reset_game('sid-alice')
    assert all(p.score == 0 for p in controller.state.players.values())


def test_start_requires_host_and_songs(controller, events, timers, make_game):
    make_game(('Alice', 'Bob'), songs=0)
    controller.start_game('sid-bob')
    assert events.named('actionRejected') == []
    controller.start_game('sid-alice')
    rejected = events.last('actionRejected', to='sid-alice')
    assert rejected['action'] == 'startGame'
    assert controller.state.phase == Phase.SELECTION
    assert events.named('gameStarted') == []


def test_unauthorized_actions_reported_when_configured(events, timers, clock):
    controller = GameController(
        config_dict(REPORT_UNAUTHORIZED=True), events, timers=timers, catalog=FakeCatalog(), clock=clock,
    )
    controller.join('a', {'name': 'Alice'})
    controller.join('b', {'name': 'Bob'})
    controller.open_selection('b')
    assert events.last('actionRejected', to='b') == {
        'action': 'openSelection', 'message': 'Only the host can do that',
    }
    assert controller.state.phase == Phase.LOBBY


def test_guess_before_game_is_plain_chat(controller, events, make_game):
    make_game(('Alice', 'Bob'))
    controller.submit_guess('sid-bob', 'hello there')
    assert events.last('chatMessage')['type'] == 'chat'
    assert events.last('guessResult', to='sid-bob') == {'correct': False, 'silent': True}


def test_empty_guess_is_rejected_privately(controller, events, make_game):
    make_game(('Alice', 'Bob'))
    controller.submit_guess('sid-bob', {'text': '   '})
    assert events.last('guessResult', to='sid-bob')['correct'] is False
    assert events.named('chatMessage') == []


def test_start_from_lobby_is_rejected_until_selection_opens(controller, events, timers):
    controller.join('sid-alice', {'name': 'Alice'})
    controller.join('sid-bob', {'name': 'Bob'})
    controller.submit_song('sid-alice', {'title': 'Africa', 'artist': 'Toto',
                                         'previewUrl': 'https://audio.example/4.m4a'})
    controller.start_game('sid-alice')
    assert events.last('actionRejected', to='sid-alice') == {
        'action': 'startGame', 'message': 'Open song selection first',
    }
    assert controller.state.phase == Phase.LOBBY
    assert events.named('gameStarted') == []
    assert timers.pending_names() == []

    controller.open_selection('sid-alice')
    controller.start_game('sid-alice')
    assert controller.state.phase == Phase.PLAYING
    assert events.last('gameStarted') == {'trackCount': 1}


def test_leaving_during_selection_rebroadcasts_readiness(controller, events, make_game):
    make_game(('Alice', 'Bob', 'Cara'), songs=2)
    assert events.last('songSubmitted')['isReady'] is False
    events.clear()
    controller.disconnect('sid-cara')
    assert events.names() == ['playerJoined', 'songSubmitted']
    submitted = events.last('songSubmitted')
    assert submitted['isReady'] is True
    assert set(submitted['submittedPlayers']) == {'sid-alice', 'sid-bob'}


def test_kicking_the_last_pending_submitter_rebroadcasts_readiness(controller, events, make_game):
    make_game(('Alice', 'Bob', 'Cara'), songs=2)
    events.clear()
    assert controller.kick_player('sid-alice', {'targetId': 'sid-cara'}) == 'sid-cara'
    assert events.last('songSubmitted')['isReady'] is True
