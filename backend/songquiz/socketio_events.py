from flask import current_app, request
from flask_socketio import emit

from songquiz import NAMESPACE, socketio


def _controller():
    return current_app.extensions['songquiz']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}', 'state': _controller().snapshot()})


def handle_disconnect(*_reason):
    _controller().disconnect(_get_sid())


def handle_join_game(data=None):
    _controller().join(_get_sid(), data)


def handle_open_selection(data=None):
    _controller().open_selection(_get_sid())


def handle_submit_song(data=None):
    _controller().submit_song(_get_sid(), data)


def handle_start_game(data=None):
    _controller().start_game(_get_sid())


def handle_submit_guess(data=None):
    _controller().submit_guess(_get_sid(), data)


def handle_skip_round(data=None):
    _controller().skip_round(_get_sid())


def handle_kick_player(data=None):
    _controller().kick_player(_get_sid(), data)


def handle_play_again(data=None):
    _controller().play_again(_get_sid())


def handle_reset_game(data=None):
    _controller().reset_game(_get_sid())


def handle_search_songs(data=None):
    # Catalog I/O must not hold up the round timer or other players
    controller = _controller()
    sid = _get_sid()
    if current_app.config.get('TESTING'):
        controller.search_songs(sid, data)
    else:
        socketio.start_background_task(controller.search_songs, sid, data)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the game namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('joinGame', handle_join_game, namespace=NAMESPACE)
    socketio.on_event('openSelection', handle_open_selection, namespace=NAMESPACE)
    socketio.on_event('submitSong', handle_submit_song, namespace=NAMESPACE)
    socketio.on_event('startGame', handle_start_game, namespace=NAMESPACE)
    socketio.on_event('submitGuess', handle_submit_guess, namespace=NAMESPACE)
    socketio.on_event('skipRound', handle_skip_round, namespace=NAMESPACE)
    socketio.on_event('kickPlayer', handle_kick_player, namespace=NAMESPACE)
    socketio.on_event('playAgain', handle_play_again, namespace=NAMESPACE)
    socketio.on_event('resetGame', handle_reset_game, namespace=NAMESPACE)
    socketio.on_event('searchSongs', handle_search_songs, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
