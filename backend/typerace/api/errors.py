from flask import current_app, jsonify

from typerace import db
from typerace.errors import RaceError


def register_error_handlers(flask_app):
    @flask_app.errorhandler(RaceError)
    def handle_race_error(exc):
        db.session.rollback()
        current_app.logger.info(f"[command-error] code={exc.code} message={exc.message}")
        return jsonify(exc.to_dict()), exc.status_code
