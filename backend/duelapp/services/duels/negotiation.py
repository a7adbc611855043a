"""Score negotiation between the two participants of a duel.

One participant submits a score, the other either accepts it (the duel is
validated) or submits their own (a counter-proposal that replaces it).
Agreement always needs the party who did not author the standing proposal.
Administrators can cut the cycle short with force_validate, or remove the
duel entirely.
"""
import json

from flask import current_app

from duelapp import db
from duelapp.errors import NotFound, PermissionDenied, StateConflict
from duelapp.models import AdminAction, Duel, Proposition, utcnow
from .lifecycle import (
    ACCEPT_SCORE,
    ESCALATE,
    SUBMIT_SCORE,
    apply_forced_validation,
    apply_transition,
    check_expected,
    commit,
    finalize,
    get_duel,
    require_participant,
)
from .notifications import notify_duel_update
from .validation import RAISON_ADMIN_MAX_LEN, validate_scores, validate_text


def require_admin(principal) -> None:
    if not getattr(principal, 'is_admin', False):
        raise PermissionDenied('Administrator capability required', field='adminId')


def _escalation_threshold() -> int:
    return int(current_app.config['SCORE_ESCALATION_THRESHOLD'])


def submit_score(duel_id, principal, score_provocateur, score_adversaire, expected_etat=None) -> dict:
    """Record (or replace) the duel's score proposal on behalf of principal.

    Returns the proposal as seen by its author. When the escalation policy
    trips, the duel is parked in EN_ATTENTE_VALIDATION instead and the
    returned view carries that etat.
    """
    duel = get_duel(duel_id)
    validate_scores(score_provocateur, score_adversaire)
    require_participant(duel, principal)

    source = duel.etat
    previous_author = duel.proposition.propose_par if duel.proposition else None
    apply_transition(duel, SUBMIT_SCORE, expected_etat)

    if source == Duel.A_JOUER:
        duel.nb_contre_propositions = 0
    is_counter = previous_author is not None and previous_author != principal.id
    if is_counter:
        duel.nb_contre_propositions = (duel.nb_contre_propositions or 0) + 1

    threshold = _escalation_threshold()
    if is_counter and threshold > 0 and duel.nb_contre_propositions >= threshold:
        apply_transition(duel, ESCALATE)
        duel.proposition = None
        current_app.logger.warning(
            f"[escalate] duel={duel.id} after {duel.nb_contre_propositions} counter-proposals"
        )
        commit(duel, ESCALATE)
        return {
            'duelId': duel.id,
            'etat': duel.etat,
            'scoreProvocateur': score_provocateur,
            'scoreAdversaire': score_adversaire,
            'proposePar': principal.id,
            'dateProposition': None,
            'aPropose': True,
            'peutRepondre': False,
        }

    submitted_at = utcnow()
    proposition = duel.proposition
    if proposition is None:
        proposition = Proposition(propose_par=principal.id,
                                  score_provocateur=score_provocateur,
                                  score_adversaire=score_adversaire,
                                  date_proposition=submitted_at)
        duel.proposition = proposition
    else:
        proposition.propose_par = principal.id
        proposition.score_provocateur = score_provocateur
        proposition.score_adversaire = score_adversaire
        proposition.date_proposition = submitted_at
    # the duel row carries the version, so every submission must write it
    duel.date_derniere_proposition = submitted_at
    kind = 'counter' if is_counter else 'proposal'
    current_app.logger.info(
        f"[score] duel={duel.id} {kind} by={principal.id} score={score_provocateur}-{score_adversaire}"
    )
    commit(duel, SUBMIT_SCORE)
    return duel.proposition.to_dict(principal.id)


def get_proposition(duel_id, principal) -> dict:
    duel = get_duel(duel_id)
    if not principal.is_admin:
        require_participant(duel, principal)
    if duel.etat != Duel.PROPOSE_SCORE or duel.proposition is None:
        raise NotFound(f'No score proposal outstanding for duel {duel.id}', field='proposition')
    return duel.proposition.to_dict(principal.id)


def accept_proposition(duel_id, principal, expected_etat=None) -> Duel:
    duel = get_duel(duel_id)
    require_participant(duel, principal)
    check_expected(duel, expected_etat)
    proposition = duel.proposition
    if duel.etat != Duel.PROPOSE_SCORE or proposition is None:
        raise StateConflict(f'Duel {duel.id} has no score proposal to accept', field='etat')
    if proposition.propose_par == principal.id:
        raise PermissionDenied('You cannot accept your own score proposal', field='callerId')

    score_provocateur = proposition.score_provocateur
    score_adversaire = proposition.score_adversaire
    apply_transition(duel, ACCEPT_SCORE)
    finalize(duel, score_provocateur, score_adversaire)
    current_app.logger.info(
        f"[validate] duel={duel.id} accepted_by={principal.id} "
        f"score={score_provocateur}-{score_adversaire} vainqueur={duel.vainqueur_id}"
    )
    return commit(duel, ACCEPT_SCORE)


def force_validate(duel_id, principal, score_provocateur, score_adversaire, raison=None) -> Duel:
    require_admin(principal)
    allow_draw = bool(current_app.config.get('ALLOW_FORCED_DRAW', False))
    duel = get_duel(duel_id)
    validate_scores(score_provocateur, score_adversaire, allow_draw=allow_draw)
    raison = validate_text(raison, 'raison', RAISON_ADMIN_MAX_LEN)

    etat_avant = apply_forced_validation(duel)
    finalize(duel, score_provocateur, score_adversaire)
    duel.valide_par_admin = True
    db.session.add(AdminAction(
        duel_id=duel.id,
        admin_id=principal.id,
        action=AdminAction.FORCE_VALIDATE,
        raison=raison,
        etat_avant=etat_avant,
        details=json.dumps({
            'scoreProvocateur': score_provocateur,
            'scoreAdversaire': score_adversaire,
            'vainqueurId': duel.vainqueur_id,
        }),
    ))
    current_app.logger.info(
        f"[force_validate] duel={duel.id} admin={principal.id} from={etat_avant} "
        f"score={score_provocateur}-{score_adversaire} raison={raison or 'unspecified'}"
    )
    return commit(duel, 'force_validate')


def delete_duel(duel_id, principal, raison=None) -> dict:
    """Hard-delete a duel whatever its state. The audit row outlives it."""
    require_admin(principal)
    raison = validate_text(raison, 'raison', RAISON_ADMIN_MAX_LEN)
    duel = get_duel(duel_id)
    duel_id = duel.id
    etat = duel.etat
    participants = duel.participant_ids()
    snapshot = duel.to_dict()

    db.session.add(AdminAction(
        duel_id=duel_id,
        admin_id=principal.id,
        action=AdminAction.DELETE,
        raison=raison,
        etat_avant=etat,
        details=json.dumps(snapshot),
    ))
    # Bulk deletes skip the version check: deletion wins over any in-flight write
    Proposition.query.filter_by(duel_id=duel_id).delete()
    deleted = Duel.query.filter_by(id=duel_id).delete()
    if not deleted:
        raise NotFound(f'Duel {duel_id} not found', field='id')
    db.session.commit()
    current_app.logger.info(
        f"[delete] duel={duel_id} admin={principal.id} etat={etat} raison={raison or 'unspecified'}"
    )
    notify_duel_update(duel_id, None, participants)
    return {
        'ok': True,
        'duelSupprime': {
            'id': duel_id,
            'provocateur': snapshot['provocateur'],
            'adversaire': snapshot['adversaire'],
            'etat': etat,
        },
        'raison': raison,
    }
