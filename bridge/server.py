"""
HTTP Bridge Server for Work Sergeant.

Exposes the work session and break engine as a local JSON API so editors,
menu bar widgets and dashboards can drive it without shelling out.

Run with: python bridge/server.py
"""
import logging
import os
import sys
from datetime import datetime
from typing import Optional

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from work_sergeant.breaks import DETACHED
from work_sergeant.config import get_home_dir
from work_sergeant.controller import WorkController
from work_sergeant.errors import (
    PolicyBlockedError,
    StateConflictError,
    ValidationError,
    WorkSergeantError,
)
from work_sergeant.logging_utils import setup_logging

logger = logging.getLogger("work_sergeant.bridge")

app = Flask(__name__)
CORS(app)

# Global state
controller: Optional[WorkController] = None


def initialize_services(home=None) -> WorkController:
    """Initialize the controller for the given home directory."""
    global controller

    home_dir = get_home_dir(home)
    setup_logging(home_dir / "logs", console_level=logging.INFO)
    logger.info(f"Initializing Work Sergeant services in {home_dir}...")

    controller = WorkController(home=home_dir)
    logger.info("Services initialized successfully")
    return controller


def _controller() -> WorkController:
    if controller is None:
        raise RuntimeError("Controller not initialized")
    return controller


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _optional_seconds(data: dict, key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{key}' must be a whole number of seconds")
    return value


def _status_for(error: WorkSergeantError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, PolicyBlockedError):
        return 423
    if isinstance(error, StateConflictError):
        return 409
    return 500


@app.errorhandler(WorkSergeantError)
def handle_work_sergeant_error(error: WorkSergeantError):
    logger.info(f"Request rejected: {error.code}: {error.message}")
    return jsonify(error.to_dict()), _status_for(error)


@app.errorhandler(Exception)
def handle_unexpected_error(error: Exception):
    # 404/405 and other HTTP errors keep their own status
    if isinstance(error, HTTPException):
        return error
    logger.exception(f"Request failed: {error}")
    return jsonify({"status": "error", "error": "internal_error", "message": str(error)}), 500


# ============================================================================
# Status & Health Endpoints
# ============================================================================

@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "controller_ready": controller is not None,
        "timestamp": datetime.now().isoformat()
    })


# ============================================================================
# Work Sessions
# ============================================================================

@app.route('/api/work/status', methods=['GET'])
def work_status():
    return jsonify(_controller().work_status())


@app.route('/api/work/start', methods=['POST'])
def work_start():
    """Start a work session. Body: {"goal": str, "planned_duration_seconds": int?}"""
    data = _json_body()
    result = _controller().start_work(
        data.get('goal', ''),
        _optional_seconds(data, 'planned_duration_seconds'),
        directory=data.get('directory'),
    )
    logger.info(f"Session started via bridge: goal='{result['goal']}'")
    return jsonify(result)


@app.route('/api/work/stop', methods=['POST'])
def work_stop():
    """Stop the work session. Nobody is at a prompt, so early stops are never confirmed."""
    data = _json_body()
    return jsonify(_controller().stop_work(reason=data.get('reason')))


@app.route('/api/work/focus', methods=['GET'])
def work_focus():
    return jsonify(_controller().focus())


@app.route('/api/work/stats', methods=['GET'])
def work_stats():
    return jsonify(_controller().stats())


@app.route('/api/work/mode', methods=['POST'])
def work_mode():
    """Set enforcement mode. Body: {"mode": "off"|"moderate"|"coaching"|"strict"}"""
    data = _json_body()
    return jsonify(_controller().set_mode(data.get('mode', '')))


@app.route('/api/work/strict', methods=['POST'])
def work_strict():
    """Toggle all strict policies. Body: {"enabled": bool}"""
    data = _json_body()
    enabled = data.get('enabled')
    if not isinstance(enabled, bool):
        raise ValidationError("'enabled' must be true or false")
    return jsonify(_controller().set_strict(enabled))


@app.route('/api/work/violations', methods=['GET'])
def get_violations():
    return jsonify(_controller().violations())


@app.route('/api/work/violations', methods=['DELETE'])
def delete_violations():
    return jsonify(_controller().reset_violations())


# ============================================================================
# Breaks
# ============================================================================

@app.route('/api/break/status', methods=['GET'])
def break_status():
    return jsonify(_controller().break_status())


@app.route('/api/break/start', methods=['POST'])
def break_start():
    """Start a detached break. Body: {"duration_seconds": int?, "type": str?}"""
    data = _json_body()
    result = _controller().start_break(
        duration=_optional_seconds(data, 'duration_seconds'),
        break_type=data.get('type'),
        mode=DETACHED,
    )
    return jsonify(result)


@app.route('/api/break/stop', methods=['POST'])
def break_stop():
    return jsonify(_controller().stop_break())


@app.route('/api/break/compliance', methods=['GET'])
def break_compliance():
    return jsonify(_controller().break_compliance(request.args.get('month')))


@app.route('/api/break/scheduled', methods=['GET', 'POST', 'DELETE'])
def break_scheduled():
    """Scheduled break daemon: GET status, POST start, DELETE stop."""
    if request.method == 'POST':
        return jsonify(_controller().scheduled_start())
    if request.method == 'DELETE':
        return jsonify(_controller().scheduled_stop())
    return jsonify(_controller().scheduled_status())


# ============================================================================
# Main
# ============================================================================

def main():
    """Start the bridge server."""
    try:
        initialize_services(os.environ.get('WORK_SERGEANT_HOME'))
    except (OSError, WorkSergeantError) as e:
        logger.error(f"Failed to initialize services: {e}")
        sys.exit(1)

    port = int(os.environ.get('BRIDGE_PORT', 5050))

    logger.info("=" * 60)
    logger.info("🚀 Work Sergeant Bridge Server")
    logger.info(f"   Listening on: http://127.0.0.1:{port}")
    logger.info(f"   Status: http://127.0.0.1:{port}/api/health")
    logger.info("=" * 60)

    try:
        app.run(
            host='127.0.0.1',  # Only local connections
            port=port,
            debug=os.environ.get('DEBUG', 'false').lower() == 'true',
            threaded=True,
            use_reloader=False
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use! Set BRIDGE_PORT to use another one.")
        else:
            logger.error(f"Failed to start server: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
