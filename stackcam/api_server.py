#!/usr/bin/env python3
"""
Stackcam API Server
Capture, gallery and scene-analysis endpoints around one shared camera.
"""

import os
import logging
import random
from typing import Callable, Dict, Optional

import numpy as np
from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify
from flask_cors import CORS

from .exceptions import (
    CaptureError,
    CaptureInProgress,
    EncodingFailure,
    FrameSourceUnavailable,
)
from .models.capture_settings import CameraMode
from .services.capture_session_service import CaptureSessionService
from .services.frame_source_service import VideoCaptureFrameSource
from .services.stacking_service import FrameSource

logger = logging.getLogger(__name__)

# Error kind → HTTP status
STATUS_BY_ERROR = {
    CaptureInProgress: 409,
    FrameSourceUnavailable: 503,
    EncodingFailure: 500,
}


class SessionStore:
    """Holds the capture sessions of every connected client."""

    def __init__(self, session_factory: Callable[[str], CaptureSessionService] = None):
        self.session_factory = session_factory or (lambda sid: CaptureSessionService(session_id=sid))
        self.sessions: Dict[str, CaptureSessionService] = {}

    def get_or_create(self, session_id: str = None) -> CaptureSessionService:
        """Get existing session or create new one."""
        if session_id and session_id in self.sessions:
            return self.sessions[session_id]
        session = self.session_factory(session_id)
        self.sessions[session.session_id] = session
        return session

    def get(self, session_id: Optional[str]) -> Optional[CaptureSessionService]:
        if not session_id:
            return None
        return self.sessions.get(session_id)

    def drop(self, session_id: str) -> bool:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.clear()
        return True


def error_response(err: CaptureError):
    status = next((code for cls, code in STATUS_BY_ERROR.items() if isinstance(err, cls)), 400)
    return jsonify({'success': False, 'error': err.to_dict(), 'message': str(err)}), status


def create_app(frame_source: FrameSource = None, store: SessionStore = None) -> Flask:
    """
    Build the Flask app. The frame source is shared by every session; it
    defaults to the camera named by CAMERA_DEVICE, opened on first capture.
    """
    app = Flask(__name__)
    CORS(app)  # Enable CORS for frontend communication

    app.config['FRAME_SOURCE'] = frame_source or VideoCaptureFrameSource()
    app.config['SESSIONS'] = store or SessionStore()
    sessions: SessionStore = app.config['SESSIONS']

    def _session_from_request() -> Optional[CaptureSessionService]:
        session_id = request.args.get('session_id')
        if session_id is None and request.is_json:
            session_id = (request.get_json(silent=True) or {}).get('session_id')
        return sessions.get(session_id)

    def _invalid_session():
        return jsonify({'success': False, 'message': 'Invalid session'}), 400

    @app.route('/api/session', methods=['POST'])
    def create_session():
        session = sessions.get_or_create()
        logger.info(f"Created session {session.session_id}")
        return jsonify({
            'success': True,
            'session_id': session.session_id,
            'settings': session.settings.to_dict(),
        })

    @app.route('/api/settings', methods=['GET'])
    def current_settings():
        """Simulated light metering: every poll returns a fresh reading."""
        session = _session_from_request()
        if session is None:
            return _invalid_session()
        return jsonify({'success': True, 'settings': session.meter().to_dict()})

    @app.route('/api/capture', methods=['POST'])
    def capture():
        body = request.get_json(silent=True) or {}
        session = sessions.get(body.get('session_id'))
        if session is None:
            return _invalid_session()

        try:
            mode = CameraMode.parse(body.get('mode', CameraMode.PHOTO.value))
        except ValueError as e:
            return jsonify({'success': False, 'message': str(e)}), 400

        frames = body.get('frames')
        try:
            artifact = session.capture(mode, app.config['FRAME_SOURCE'], frame_count=frames)
        except CaptureError as e:
            logger.error(f"Capture error in session {session.session_id}: {e}")
            return error_response(e)

        return jsonify({'success': True, 'photo': artifact.to_dict()})

    @app.route('/api/photos', methods=['GET'])
    def list_photos():
        session = _session_from_request()
        if session is None:
            return _invalid_session()
        include_payload = request.args.get('include_payload', 'false').lower() == 'true'
        photos = []
        for artifact in session.photos():
            record = artifact.to_dict()
            if not include_payload:
                record.pop('url')
            photos.append(record)
        return jsonify({'success': True, 'photos': photos, 'count': len(photos)})

    @app.route('/api/photos/<photo_id>', methods=['GET'])
    def get_photo(photo_id):
        session = _session_from_request()
        if session is None:
            return _invalid_session()
        artifact = session.get(photo_id)
        if artifact is None:
            return jsonify({'success': False, 'message': 'Photo not found'}), 404
        return jsonify({'success': True, 'photo': artifact.to_dict()})

    @app.route('/api/photos/<photo_id>', methods=['DELETE'])
    def discard_photo(photo_id):
        session = _session_from_request()
        if session is None:
            return _invalid_session()
        if not session.discard(photo_id):
            return jsonify({'success': False, 'message': 'Photo not found'}), 404
        return jsonify({'success': True, 'message': 'Photo discarded'})

    @app.route('/api/photos/<photo_id>/analyze', methods=['POST'])
    def analyze_photo(photo_id):
        session = _session_from_request()
        if session is None:
            return _invalid_session()
        analysis = session.analyze(photo_id)
        if analysis is None:
            return jsonify({'success': False, 'message': 'Photo not found'}), 404
        return jsonify({'success': True, 'photo_id': photo_id, 'analysis': analysis})

    @app.route('/api/clear-session', methods=['POST'])
    def clear_session():
        """Clear a session and free memory."""
        session_id = (request.get_json(silent=True) or {}).get('session_id')
        if session_id and sessions.drop(session_id):
            return jsonify({'success': True, 'message': 'Session cleared'})
        return jsonify({'success': False, 'message': 'Session not found'})

    @app.route('/api/health', methods=['GET'])
    def health_check():
        return jsonify({
            'status': 'healthy',
            'message': 'Stackcam API is running',
            'active_sessions': len(sessions.sessions),
        })

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal server error: {e}")
        return jsonify({'error': 'Internal server error'}), 500

    return app


def main():
    # --- Deterministic execution setup ---
    random_seed = int(os.getenv("RANDOM_SEED", "42"))
    np.random.seed(random_seed)
    random.seed(random_seed)

    # --- Centralized logging configuration ---
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "5000"))
    app = create_app()
    logger.info(f"Starting Stackcam API on {host}:{port} (camera {app.config['FRAME_SOURCE'].device!r})")
    app.run(host=host, port=port, threaded=True)


if __name__ == '__main__':
    main()
