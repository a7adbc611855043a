from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from duelapp.services.duels import lifecycle, negotiation
from duelapp.services.duels.validation import parse_etat, parse_pagination


duels = Blueprint('duels', __name__)


def _body():
    return request.get_json(silent=True) or {}


@duels.route('', methods=['GET'])
@login_required
def list_duels():
    page, limit = parse_pagination(request.args)
    etat = parse_etat(request.args.get('etat') or None)
    dueliste_id = lifecycle.parse_id_filter(request.args.get('duelisteId'), 'duelisteId')
    return jsonify(lifecycle.list_duels(page, limit, etat=etat, dueliste_id=dueliste_id))


@duels.route('', methods=['POST'])
@login_required
def create_duel():
    """Propose a duel. The caller is the provocateur unless an admin says otherwise."""
    data = _body()
    duel = lifecycle.create_duel(
        current_user,
        provocateur_id=data.get('provocateurId'),
        adversaire_id=data.get('adversaireId'),
        notes=data.get('notes'),
        date_programmee=data.get('dateProgrammee'),
    )
    return jsonify(duel.to_dict()), 201


@duels.route('/<int:duel_id>', methods=['GET'])
@login_required
def get_duel(duel_id):
    return jsonify(lifecycle.get_duel(duel_id).to_dict())


@duels.route('/<int:duel_id>/respond', methods=['POST'])
@login_required
def respond(duel_id):
    data = _body()
    duel = lifecycle.respond_to_proposal(
        duel_id,
        current_user,
        data.get('decision'),
        raison=data.get('raison'),
        expected_etat=parse_etat(data.get('etat')),
    )
    return jsonify(duel.to_dict())


@duels.route('/<int:duel_id>/schedule', methods=['POST'])
@login_required
def schedule(duel_id):
    data = _body()
    duel = lifecycle.schedule_duel(duel_id, current_user, expected_etat=parse_etat(data.get('etat')))
    return jsonify(duel.to_dict())


@duels.route('/<int:duel_id>/cancel', methods=['POST'])
@login_required
def cancel(duel_id):
    data = _body()
    duel = lifecycle.cancel_duel(duel_id, current_user, expected_etat=parse_etat(data.get('etat')))
    return jsonify(duel.to_dict())


@duels.route('/<int:duel_id>/score', methods=['POST'])
@login_required
def submit_score(duel_id):
    """Propose a score, or counter-propose while another proposal stands."""
    data = _body()
    proposition = negotiation.submit_score(
        duel_id,
        current_user,
        data.get('scoreProvocateur'),
        data.get('scoreAdversaire'),
        expected_etat=parse_etat(data.get('etat')),
    )
    return jsonify(proposition)


@duels.route('/<int:duel_id>/proposition', methods=['GET'])
@login_required
def get_proposition(duel_id):
    return jsonify(negotiation.get_proposition(duel_id, current_user))


@duels.route('/<int:duel_id>/proposition/accept', methods=['POST'])
@login_required
def accept_proposition(duel_id):
    data = _body()
    duel = negotiation.accept_proposition(
        duel_id, current_user, expected_etat=parse_etat(data.get('etat'))
    )
    return jsonify(duel.to_dict())

