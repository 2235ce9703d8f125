from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

NAMESPACE = '/ws'
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def socket_emit(event, payload=None, to=None):
    """Emit on the game namespace; broadcast unless a single sid is targeted."""
    socketio.emit(event, payload, to=to, namespace=NAMESPACE)


def create_app(config_class=Config, **controller_options):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One game session per process, owned by the app
    from songquiz.games import GameController
    flask_app.extensions['songquiz'] = GameController(flask_app.config, socket_emit, **controller_options)

    from songquiz.main import main
    flask_app.register_blueprint(main, url_prefix='/api')

    from songquiz.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('search-songs')
    @click.argument('query')
    def search_songs_command(query):
        """Looks up QUERY in the song catalog and prints the hits."""
        catalog = flask_app.extensions['songquiz'].catalog
        results = catalog.search(query)
        if not results:
            click.echo('No results.')
            return
        for track in results:
            click.echo(f'{track.title} - {track.artist}  {track.preview_url}')

    flask_app.cli.add_command(search_songs_command)

    return flask_app
