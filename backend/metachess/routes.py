from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the MetaChess game server!'})

@main.route('/health')
def health():
    coordinator = current_app.extensions['metachess']
    return jsonify({'status': 'ok', **coordinator.stats()})
