# app.py
from flask import Flask, jsonify, request, session
import datetime
import logging
import os
from flask_cors import CORS
from werkzeug.security import check_password_hash
from functools import wraps
from dotenv import load_dotenv
from errors import (
    ConfigurationError,
    DataError,
    SantaError,
    StateError,
    TransportError,
)
from mailer import MailerClient
from secret_santa import SecretSanta, load_participants
from storage import env_file_path, ensure_data_dir, get_data_dir, participants_file_path


ENV_FILE = env_file_path()
load_dotenv(ENV_FILE, override=True)
ensure_data_dir()

# Draw made by this process, kept so notifications can skip hash recovery.
SS = None


def load_logins_from_env():
    prefix = "LOGIN_"
    result = {}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            name = key[len(prefix):].lower()
            result[name] = value
    return result


def load_admin_users():
    raw = os.environ.get('ADMIN_USERS', '')
    return {name.strip().lower() for name in raw.split(',') if name.strip()}


logins = load_logins_from_env()
ADMIN_USERS = load_admin_users()


app = Flask(__name__)
CORS(app, supports_credentials=True)
app.secret_key = os.environ.get('SECRET_KEY', 'dev-secret')
logging.basicConfig(level=os.environ.get('LOG_LEVEL', 'INFO'))


def is_hashed(value: str) -> bool:
    return isinstance(value, str) and (value.startswith('pbkdf2:') or value.startswith('scrypt:'))


def is_draw_locked() -> bool:
    v = os.environ.get('DRAW_LOCKED', '')
    return str(v).lower() in ('1', 'true', 'yes', 'on')


def is_admin_user():
    if 'user' not in session:
        return False
    # Without an explicit list every organizer login is an admin.
    return not ADMIN_USERS or session['user'] in ADMIN_USERS


def get_mail_client():
    return MailerClient.new()


def new_draw(year=None):
    participants = load_participants(participants_file_path())
    return SecretSanta.for_year(
        participants,
        year=year,
        data_dir=get_data_dir(),
        conceal_method=os.environ.get('CONCEAL_METHOD') or None,
    )


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user' not in session:
            return jsonify({"error": "Unauthorized"}), 401
        if not is_admin_user():
            return jsonify({"error": "Forbidden"}), 403
        return f(*args, **kwargs)
    return decorated_function


@app.errorhandler(SantaError)
def handle_santa_error(exc):
    if isinstance(exc, (ConfigurationError, DataError)):
        status = 400
    elif isinstance(exc, StateError):
        status = 409
    elif isinstance(exc, TransportError):
        status = 502
    else:
        status = 500
    app.logger.error("%s: %s", type(exc).__name__, exc)
    return jsonify({"success": False, "error": str(exc), "kind": type(exc).__name__}), status


@app.route('/healthz')
def healthz():
    return jsonify({"status": "ok"})


@app.route('/api/login', methods=['POST'])
def login():
    data = request.get_json() or {}
    name = (data.get('name') or '').lower()
    code = data.get('code') or ''

    if name in logins:
        stored = logins[name]
        if is_hashed(stored) and check_password_hash(stored, code):
            session['user'] = name
            return jsonify({"success": True, "name": name})

    return jsonify({"success": False, "error": "Invalid credentials"}), 401


@app.route('/api/admin/run_matches', methods=['POST'])
@admin_required
def admin_run_matches():
    # Respect DRAW_LOCKED environment variable to prevent accidental redraws
    if is_draw_locked():
        return jsonify({"success": False, "error": "Draw locked by server configuration"}), 403

    data = request.get_json(silent=True) or {}
    global SS
    year = datetime.datetime.now().year
    draw = new_draw(year)
    rows = draw.run()
    SS = draw
    app.logger.info("Draw for %s saved to %s", year, draw.store.path)

    body = {"success": True, "year": year, "couples": len(rows)}
    if data.get('notify'):
        report = draw.send_emails(client=get_mail_client())
        body["notifications"] = report.to_dict()
        body["success"] = report.ok
    return jsonify(body)


@app.route('/api/admin/send_emails', methods=['POST'])
@admin_required
def admin_send_emails():
    data = request.get_json(silent=True) or {}
    only = data.get('only')
    if only is not None and not isinstance(only, list):
        return jsonify({"success": False, "error": "'only' must be a list of names"}), 400

    draw = SS if SS is not None else new_draw()
    if SS is None and not draw.store.exists():
        return jsonify({"success": False, "error": "No draw saved for this year"}), 404

    report = draw.send_emails(client=get_mail_client(), only=only)
    return jsonify({"success": report.ok, **report.to_dict()})


@app.route('/api/admin/assignments', methods=['GET'])
@admin_required
def admin_assignments():
    draw = SS if SS is not None else new_draw()
    if not draw.store.exists():
        return jsonify({"success": False, "error": "No draw saved for this year"}), 404
    rows = draw.load()
    return jsonify({"success": True, "couples": [list(row) for row in rows]})


if __name__ == '__main__':
    debug_flag = os.environ.get('FLASK_DEBUG', '1')
    app.run(debug=debug_flag not in ('0', 'false', 'False'))
