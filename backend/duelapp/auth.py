"""Verified caller identity.

Sessions are issued elsewhere; this module only turns a signed bearer token
into a Principal for Flask-Login, so every operation receives the caller
explicitly instead of reading ambient client state.
"""
from functools import wraps

from flask import current_app, jsonify
from flask_login import UserMixin, current_user, login_required
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from duelapp import login_manager
from duelapp.errors import PermissionDenied

TOKEN_SALT = 'duel-principal'


class Principal(UserMixin):
    def __init__(self, id, is_admin=False):
        self.id = int(id)
        self.is_admin = bool(is_admin)

    def to_dict(self):
        return {'id': self.id, 'isAdmin': self.is_admin}

    def __repr__(self):
        return f"<Principal id={self.id} admin={self.is_admin}>"


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(dueliste_id: int, is_admin: bool = False) -> str:
    return _serializer().dumps({'id': int(dueliste_id), 'admin': bool(is_admin)})


def principal_from_token(token):
    if not token:
        return None
    max_age = int(current_app.config.get('TOKEN_MAX_AGE_SEC', 86400))
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("[auth] expired token rejected")
        return None
    except BadSignature:
        current_app.logger.warning("[auth] invalid token rejected")
        return None
    try:
        return Principal(payload['id'], payload.get('admin', False))
    except (KeyError, TypeError, ValueError):
        return None


@login_manager.request_loader
def load_principal(req):
    header = req.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer':
        return None
    return principal_from_token(token.strip())


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Authentication required', 'kind': 'unauthorized', 'field': None}), 401


def admin_required(view):
    """login_required plus the admin capability flag."""
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not current_user.is_admin:
            current_app.logger.warning(f"[admin] denied principal={current_user.id}")
            raise PermissionDenied('Administrator capability required')
        return view(*args, **kwargs)
    return wrapped
