"""
Flask Web Application for the CogniPlay screening session core

JSON API consumed by the presentation layer. One SessionManager instance
is created at startup and shared by every request.
"""

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
import logging

from cogniplay.config import Settings, configure_logging
from cogniplay.core.session_manager import SessionManager
from cogniplay.persistence import JSONFileStore, SessionPersistence
from cogniplay.scores import score_from_json
from cogniplay.utils.display_helpers import build_session_results, interpret_mmse
from cogniplay.utils.speech_inference import InferenceResponseError, parse_prediction_response

logger = logging.getLogger(__name__)

SPEECH_TASK_ID = "speech"


def build_manager(settings):
    """Create the process-wide SessionManager backed by the data directory"""
    store = JSONFileStore(settings.data_dir)
    manager = SessionManager(SessionPersistence(store))
    manager.initialize()
    return manager


def _session_json(session):
    return session.to_json() if session is not None else None


def _request_json():
    """
    Request body as JSON, or None when the body is empty

    A non-empty body that is not valid JSON is rejected with 400 by Flask
    instead of being read as "no body".
    """
    if not request.get_data(cache=True):
        return None
    return request.get_json(force=True)


def _parse_score(payload):
    """
    Extract a score from a request body

    Expected shape: {"score": {"type": "SRTTScore", "fields": {...}}}

    Returns:
        TaskScore or None when the body carries no score

    Raises:
        ValueError: If the score object is malformed
    """
    if not payload:
        return None
    if not isinstance(payload, dict):
        raise ValueError("request body must be a JSON object")
    if payload.get('score') is None:
        return None
    score = payload['score']
    if not isinstance(score, dict) or 'type' not in score:
        raise ValueError("score must be an object with 'type' and 'fields'")
    return score_from_json(score['type'], score.get('fields', {}))


def create_app(manager=None, settings=None):
    """
    Build the Flask app

    Args:
        manager: Existing SessionManager (tests inject one); built from
            settings when omitted
        settings: Settings (defaults to Settings.from_env())

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)

    if manager is None:
        settings = settings or Settings.from_env()
        manager = build_manager(settings)
    app.config['SESSION_MANAGER'] = manager

    def error_response(message, status):
        return jsonify({'success': False, 'error': message}), status

    @app.errorhandler(404)
    def not_found(e):
        return error_response('Not found', 404)

    @app.errorhandler(ValueError)
    def bad_request(e):
        logger.warning(f"Rejected request: {e}")
        return error_response(str(e), 400)

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return error_response(e.description, e.code)
        logger.exception(f"Unhandled error: {e}")
        return error_response(str(e), 500)

    # ========================
    # Sessions
    # ========================

    @app.route('/api/session', methods=['GET'])
    def get_current_session():
        """Current session (null when none exists)"""
        return jsonify({'success': True, 'session': _session_json(manager.current_session)})

    @app.route('/api/session', methods=['POST'])
    def start_session():
        """Start a new session"""
        session = manager.create_new_session()
        return jsonify({'success': True, 'session': _session_json(session)}), 201

    @app.route('/api/session/ensure', methods=['POST'])
    def ensure_session():
        session = manager.ensure_current_session()
        return jsonify({'success': True, 'session': _session_json(session)})

    @app.route('/api/sessions', methods=['GET'])
    def list_sessions():
        """Session history, oldest first"""
        sessions = manager.sessions
        return jsonify({
            'success': True,
            'sessions': [
                {
                    'id': s.id,
                    'title': s.session_title,
                    'date': s.date.isoformat(),
                    'is_completed': s.is_completed,
                }
                for s in sessions
            ],
        })

    @app.route('/api/progress', methods=['GET'])
    def get_progress():
        """Whether to offer 'continue' instead of 'start new'"""
        return jsonify({'success': True, 'has_progress': manager.has_session_with_progress()})

    @app.route('/api/data', methods=['DELETE'])
    def clear_data():
        manager.clear_all_data()
        return jsonify({'success': True})

    # ========================
    # Tasks
    # ========================

    @app.route('/api/tasks/<task_id>/complete', methods=['POST'])
    def complete_task(task_id):
        """Complete a task, optionally with a score"""
        score = _parse_score(_request_json())
        manager.complete_task(task_id, score)
        return jsonify({'success': True, 'session': _session_json(manager.current_session)})

    @app.route('/api/tasks/<task_id>/score', methods=['PUT'])
    def update_score(task_id):
        """Attach an in-progress score without completing the task"""
        score = _parse_score(_request_json())
        if score is None:
            raise ValueError("score is required")
        manager.update_task_score(task_id, score)
        return jsonify({'success': True, 'session': _session_json(manager.current_session)})

    @app.route('/api/tasks/<task_id>/score', methods=['GET'])
    def get_score(task_id):
        session = manager.current_session
        state = session.task(task_id) if session is not None else None
        if state is None:
            return error_response(f"Unknown task: {task_id}", 404)

        score = state.score.unwrap() if state.score is not None else None
        return jsonify({
            'success': True,
            'task_id': task_id,
            'score_type': state.score.type_name if state.score is not None else None,
            'score': score.to_json() if score is not None else None,
            'mmse_score': manager.get_task_mmse_score(task_id),
        })

    @app.route('/api/tasks/<task_id>/unlocked', methods=['GET'])
    def task_unlocked(task_id):
        return jsonify({
            'success': True,
            'task_id': task_id,
            'unlocked': manager.is_task_unlocked(task_id),
        })

    @app.route('/api/speech/prediction', methods=['POST'])
    def speech_prediction():
        """Complete the speech task from an inference service response"""
        try:
            prediction = parse_prediction_response(_request_json())
        except InferenceResponseError as e:
            return error_response(str(e), 422)

        manager.complete_task(SPEECH_TASK_ID, prediction.to_speech_score())
        return jsonify({
            'success': True,
            'prediction': prediction.prediction,
            'confidence': prediction.confidence,
            'session': _session_json(manager.current_session),
        })

    # ========================
    # Results
    # ========================

    @app.route('/api/results', methods=['GET'])
    def get_results():
        results = build_session_results(manager)
        if results is None:
            combined = manager.get_combined_mmse_score()
            return jsonify({
                'success': True,
                'results': None,
                'combined_mmse': combined,
                'interpretation': interpret_mmse(combined),
            })
        return jsonify({'success': True, 'results': results.to_json()})

    return app


if __name__ == '__main__':
    settings = Settings.from_env()
    configure_logging(settings)

    app = create_app(settings=settings)

    print("\n" + "="*60)
    print("COGNIPLAY SESSION SERVICE - WEB API")
    print("="*60)
    print(f"\nData directory: {settings.data_dir}")
    print(f"Listening on: http://{settings.host}:{settings.port}")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    app.run(debug=settings.debug, host=settings.host, port=settings.port)
