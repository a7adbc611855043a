from flask import Blueprint, jsonify, request
from flask_login import current_user

from duelapp.auth import admin_required
from duelapp.errors import ValidationError
from duelapp.services.duels import lifecycle, negotiation, reporting
from duelapp.services.duels.validation import parse_etat, parse_pagination, validate_text

admin = Blueprint('admin', __name__)

SEARCH_MAX_LEN = 100


@admin.route('/duels', methods=['GET'])
@admin_required
def list_duels():
    """
    All duels with their participants, filterable by etat, participant
    and pseudo search.
    """
    args = request.args
    page, limit = parse_pagination(args)
    return jsonify(lifecycle.list_duels(
        page,
        limit,
        etat=parse_etat(args.get('etat') or None),
        provocateur_id=lifecycle.parse_id_filter(args.get('provocateurId'), 'provocateurId'),
        adversaire_id=lifecycle.parse_id_filter(args.get('adversaireId'), 'adversaireId'),
        search=validate_text(args.get('search'), 'search', SEARCH_MAX_LEN),
    ))


@admin.route('/duels/stats', methods=['GET'])
@admin_required
def stats():
    return jsonify(reporting.duel_stats())


@admin.route('/duels/audit', methods=['GET'])
@admin_required
def audit():
    duel_id = lifecycle.parse_id_filter(request.args.get('duelId'), 'duelId')
    try:
        limit = int(request.args.get('limit', 50))
    except ValueError:
        raise ValidationError('limit must be between 1 and 200', field='limit')
    if not 1 <= limit <= 200:
        raise ValidationError('limit must be between 1 and 200', field='limit')
    return jsonify({'actions': reporting.audit_log(duel_id=duel_id, limit=limit)})


@admin.route('/duels/<int:duel_id>/force-validate', methods=['POST'])
@admin_required
def force_validate(duel_id):
    """
    Set the final score directly, whatever the participants proposed.
    """
    data = request.get_json(silent=True) or {}
    duel = negotiation.force_validate(
        duel_id,
        current_user,
        data.get('scoreProvocateur'),
        data.get('scoreAdversaire'),
        raison=data.get('raison'),
    )
    return jsonify(duel.to_dict())


@admin.route('/duels/<int:duel_id>', methods=['DELETE'])
@admin_required
def delete_duel(duel_id):
    data = request.get_json(silent=True) or {}
    return jsonify(negotiation.delete_duel(duel_id, current_user, raison=data.get('raison')))
