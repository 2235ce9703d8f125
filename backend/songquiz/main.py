from flask import Blueprint, current_app, jsonify, request

main = Blueprint('main', __name__)


def _controller():
    return current_app.extensions['songquiz']


@main.route('/health')
def health():
    return jsonify({'status': 'ok'})


@main.route('/state')
def get_state():
    return jsonify(_controller().snapshot())


@main.route('/search')
def search():
    """Catalog passthrough for clients that search over HTTP."""
    query = (request.args.get('q') or '').strip()
    if not query:
        return jsonify({'error': 'q is required'}), 400
    results = _controller().catalog.search(query[:100])
    return jsonify({'results': [t.to_dict() for t in results]})
