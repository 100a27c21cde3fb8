"""Main blueprint - health check and CSRF token for the dashboards."""
from flask import Blueprint, jsonify
from flask_wtf.csrf import generate_csrf
from sqlalchemy import text
from restopos.database import get_session

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """Liveness plus a trivial store round-trip."""
    get_session().execute(text('SELECT 1'))
    return jsonify({'status': 'ok'})


@main_bp.route('/api/csrf-token')
def csrf_token():
    """Token the dashboards send back in the X-CSRFToken header."""
    return jsonify({'csrfToken': generate_csrf()})
