"""Errors raised by the duel services.

Every error is a rejected operation on a single duel. The app-level handler
rolls back the session so nothing from the failed request is persisted.
"""
from flask import jsonify


class DuelError(Exception):
    status_code = 400
    kind = 'error'

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind, 'field': self.field}


class ValidationError(DuelError):
    status_code = 400
    kind = 'validation_error'


class PermissionDenied(DuelError):
    status_code = 403
    kind = 'permission_denied'


class NotFound(DuelError):
    status_code = 404
    kind = 'not_found'


class StateConflict(DuelError):
    status_code = 409
    kind = 'state_conflict'


def register_error_handlers(flask_app, db):
    @flask_app.errorhandler(DuelError)
    def handle_duel_error(exc):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.status_code
