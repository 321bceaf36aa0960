from flask import Blueprint, jsonify
from streakquiz.services.quiz import question_bank

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the streakquiz server!'})

@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'questions': len(question_bank())})
