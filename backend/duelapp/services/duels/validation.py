from datetime import datetime, timezone

from flask import current_app

from duelapp.errors import ValidationError
from duelapp.models import Duel

NOTES_MAX_LEN = 500
RAISON_REFUS_MAX_LEN = 200
RAISON_ADMIN_MAX_LEN = 500


def _score_bounds():
    cfg = current_app.config
    return int(cfg.get('SCORE_MIN', 0)), int(cfg.get('SCORE_MAX', 50))


def require_int(value, field):
    # bool is an int subclass; True is not a valid id or score
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{field} must be an integer', field=field)
    return value


def validate_scores(score_provocateur, score_adversaire, allow_draw=False):
    """Shape check shared by participant submissions and admin overrides.

    Scores must be integers within the configured bounds and, unless
    allow_draw is set, different from each other.
    """
    low, high = _score_bounds()
    for field, value in (('scoreProvocateur', score_provocateur), ('scoreAdversaire', score_adversaire)):
        require_int(value, field)
        if not low <= value <= high:
            raise ValidationError(f'{field} must be between {low} and {high}', field=field)
    if score_provocateur == score_adversaire and not allow_draw:
        raise ValidationError('Scores cannot be equal (no draws)', field='scoreAdversaire')
    return score_provocateur, score_adversaire


def validate_participants(provocateur_id, adversaire_id):
    if provocateur_id is None:
        raise ValidationError('provocateurId is required', field='provocateurId')
    if adversaire_id is None:
        raise ValidationError('adversaireId is required', field='adversaireId')
    require_int(provocateur_id, 'provocateurId')
    require_int(adversaire_id, 'adversaireId')
    if provocateur_id < 1:
        raise ValidationError('provocateurId must be a positive integer', field='provocateurId')
    if adversaire_id < 1:
        raise ValidationError('adversaireId must be a positive integer', field='adversaireId')
    if provocateur_id == adversaire_id:
        raise ValidationError('A dueliste cannot challenge themselves', field='adversaireId')
    return provocateur_id, adversaire_id


def validate_text(value, field, max_len):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string', field=field)
    value = value.strip()
    if len(value) > max_len:
        raise ValidationError(f'{field} cannot exceed {max_len} characters', field=field)
    return value or None


def parse_date(value, field):
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be an ISO 8601 string', field=field)
    raw = value.strip()
    if raw.endswith('Z'):
        raw = raw[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'{field} must be an ISO 8601 string', field=field)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_etat(value):
    """An etat name from a request (filter or expected state), or None."""
    if value is None:
        return None
    if not isinstance(value, str) or value.upper() not in Duel.ETATS:
        raise ValidationError(f'Unknown etat: {value!r}', field='etat')
    return value.upper()


def parse_pagination(args):
    cfg = current_app.config
    default_limit = int(cfg.get('DUELS_PAGE_LIMIT', 20))
    max_limit = int(cfg.get('DUELS_PAGE_MAX', 100))
    try:
        page = int(args.get('page', 1))
    except (TypeError, ValueError):
        raise ValidationError('page must be a positive integer', field='page')
    try:
        limit = int(args.get('limit', default_limit))
    except (TypeError, ValueError):
        raise ValidationError(f'limit must be between 1 and {max_limit}', field='limit')
    if page < 1:
        raise ValidationError('page must be a positive integer', field='page')
    if not 1 <= limit <= max_limit:
        raise ValidationError(f'limit must be between 1 and {max_limit}', field='limit')
    return page, limit
