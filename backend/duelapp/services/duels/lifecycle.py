"""Duel lifecycle: legal transitions of Duel.etat.

PROPOSE -> ACCEPTE -> A_JOUER -> PROPOSE_SCORE -> VALIDE, with REFUSE and
ANNULE as early exits, EN_ATTENTE_VALIDATION as the escalation parking state
and an administrator edge from any non-VALIDE state straight to VALIDE.
Every mutation here is a single-duel step committed in one transaction.
"""
from typing import Dict, Optional, Tuple

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.orm import aliased
from sqlalchemy.orm.exc import StaleDataError

from duelapp import db
from duelapp.errors import NotFound, PermissionDenied, StateConflict, ValidationError
from duelapp.models import Duel, Dueliste, utcnow
from .notifications import notify_duel_update
from .validation import (
    NOTES_MAX_LEN,
    RAISON_REFUS_MAX_LEN,
    parse_date,
    validate_participants,
    validate_text,
)

ACCEPT = 'accept'
REFUSE = 'refuse'
CANCEL = 'cancel'
SCHEDULE = 'schedule'
SUBMIT_SCORE = 'submit_score'
ACCEPT_SCORE = 'accept_score'
ESCALATE = 'escalate'

TRANSITIONS: Dict[Tuple[str, str], str] = {
    (Duel.PROPOSE, ACCEPT): Duel.ACCEPTE,
    (Duel.PROPOSE, REFUSE): Duel.REFUSE,
    (Duel.PROPOSE, CANCEL): Duel.ANNULE,
    (Duel.ACCEPTE, CANCEL): Duel.ANNULE,
    (Duel.ACCEPTE, SCHEDULE): Duel.A_JOUER,
    (Duel.A_JOUER, SUBMIT_SCORE): Duel.PROPOSE_SCORE,
    (Duel.PROPOSE_SCORE, SUBMIT_SCORE): Duel.PROPOSE_SCORE,
    (Duel.PROPOSE_SCORE, ACCEPT_SCORE): Duel.VALIDE,
    (Duel.PROPOSE_SCORE, ESCALATE): Duel.EN_ATTENTE_VALIDATION,
}

DECISIONS = {'ACCEPT': ACCEPT, 'REFUSE': REFUSE}


def can_transition(etat: str, event: str) -> bool:
    return (etat, event) in TRANSITIONS


def get_duel(duel_id) -> Duel:
    try:
        duel_id = int(duel_id)
    except (TypeError, ValueError):
        raise ValidationError('Duel id must be an integer', field='id')
    duel = db.session.get(Duel, duel_id)
    if duel is None:
        raise NotFound(f'Duel {duel_id} not found', field='id')
    return duel


def check_expected(duel: Duel, expected_etat: Optional[str]) -> None:
    """Optimistic check: the caller's view of the state must still hold."""
    if expected_etat is not None and expected_etat != duel.etat:
        raise StateConflict(
            f'Duel {duel.id} is {duel.etat}, not {expected_etat}; re-fetch and retry', field='etat'
        )


def apply_transition(duel: Duel, event: str, expected_etat: Optional[str] = None) -> str:
    check_expected(duel, expected_etat)
    target = TRANSITIONS.get((duel.etat, event))
    if target is None:
        raise StateConflict(f'Cannot {event.replace("_", " ")} a duel in state {duel.etat}', field='etat')
    previous = duel.etat
    duel.etat = target
    current_app.logger.info(f"[transition] duel={duel.id} {previous} -{event}-> {target}")
    return target


def apply_forced_validation(duel: Duel) -> str:
    """Administrator edge: any state except VALIDE goes to VALIDE."""
    if duel.etat == Duel.VALIDE:
        raise StateConflict(f'Duel {duel.id} is already validated', field='etat')
    previous = duel.etat
    duel.etat = Duel.VALIDE
    current_app.logger.info(f"[transition] duel={duel.id} {previous} -force-> {Duel.VALIDE}")
    return previous


def finalize(duel: Duel, score_provocateur: int, score_adversaire: int) -> None:
    """Record the agreed result. Caller has already moved etat to VALIDE."""
    duel.score_provocateur = score_provocateur
    duel.score_adversaire = score_adversaire
    if score_provocateur > score_adversaire:
        duel.vainqueur_id = duel.provocateur_id
    elif score_adversaire > score_provocateur:
        duel.vainqueur_id = duel.adversaire_id
    else:
        duel.vainqueur_id = None
    duel.date_validation = utcnow()
    duel.proposition = None


def commit(duel: Duel, action: str) -> Duel:
    duel_id = duel.id
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        current_app.logger.warning(f"[conflict] duel={duel_id} action={action} lost a concurrent write")
        raise StateConflict(f'Duel {duel_id} was modified concurrently; re-fetch and retry', field='etat')
    notify_duel_update(duel.id, duel.etat, duel.participant_ids())
    return duel


def require_participant(duel: Duel, principal) -> None:
    if not duel.is_participant(principal.id):
        raise PermissionDenied('Only the duel participants can do this', field='callerId')


def _resolve(dueliste_id, field) -> Dueliste:
    dueliste = db.session.get(Dueliste, dueliste_id)
    if dueliste is None:
        raise NotFound(f'Dueliste {dueliste_id} not found', field=field)
    if dueliste.statut != Dueliste.ACTIF:
        raise ValidationError(f'Dueliste {dueliste_id} is not active', field=field)
    return dueliste


def create_duel(principal, provocateur_id=None, adversaire_id=None, notes=None, date_programmee=None) -> Duel:
    if provocateur_id is None:
        provocateur_id = principal.id
    provocateur_id, adversaire_id = validate_participants(provocateur_id, adversaire_id)
    if provocateur_id != principal.id and not principal.is_admin:
        raise PermissionDenied('You can only propose duels as yourself', field='provocateurId')
    notes = validate_text(notes, 'notes', NOTES_MAX_LEN)
    date_programmee = parse_date(date_programmee, 'dateProgrammee')

    _resolve(provocateur_id, 'provocateurId')
    _resolve(adversaire_id, 'adversaireId')

    running = Duel.query.filter(
        Duel.etat.in_(Duel.EN_COURS),
        or_(
            and_(Duel.provocateur_id == provocateur_id, Duel.adversaire_id == adversaire_id),
            and_(Duel.provocateur_id == adversaire_id, Duel.adversaire_id == provocateur_id),
        ),
    ).first()
    if running:
        raise ValidationError(
            f'Duel {running.id} is already under way between these duellistes', field='adversaireId'
        )

    duel = Duel(
        provocateur_id=provocateur_id,
        adversaire_id=adversaire_id,
        etat=Duel.PROPOSE,
        notes=notes,
        date_programmee=date_programmee,
    )
    db.session.add(duel)
    db.session.flush()
    current_app.logger.info(f"[propose] duel={duel.id} provocateur={provocateur_id} adversaire={adversaire_id}")
    return commit(duel, 'create')


def respond_to_proposal(duel_id, principal, decision, raison=None, expected_etat=None) -> Duel:
    if not isinstance(decision, str) or decision.upper() not in DECISIONS:
        raise ValidationError('decision must be ACCEPT or REFUSE', field='decision')
    event = DECISIONS[decision.upper()]
    raison = validate_text(raison, 'raison', RAISON_REFUS_MAX_LEN)

    duel = get_duel(duel_id)
    require_participant(duel, principal)
    if principal.id != duel.adversaire_id:
        raise PermissionDenied('Only the adversaire can answer this proposal', field='callerId')
    apply_transition(duel, event, expected_etat)

    if event == ACCEPT:
        duel.date_acceptation = utcnow()
        if current_app.config.get('AUTO_SCHEDULE_ON_ACCEPT', True):
            apply_transition(duel, SCHEDULE)
    else:
        duel.raison_refus = raison
    return commit(duel, event)


def schedule_duel(duel_id, principal, expected_etat=None) -> Duel:
    """Acknowledge scheduling of an accepted duel (ACCEPTE -> A_JOUER)."""
    duel = get_duel(duel_id)
    require_participant(duel, principal)
    apply_transition(duel, SCHEDULE, expected_etat)
    return commit(duel, SCHEDULE)


def cancel_duel(duel_id, principal, expected_etat=None) -> Duel:
    duel = get_duel(duel_id)
    require_participant(duel, principal)
    apply_transition(duel, CANCEL, expected_etat)
    return commit(duel, CANCEL)


def list_duels(page, limit, etat=None, dueliste_id=None, provocateur_id=None, adversaire_id=None, search=None):
    query = Duel.query
    if etat:
        query = query.filter(Duel.etat == etat)
    if dueliste_id is not None:
        query = query.filter(or_(Duel.provocateur_id == dueliste_id, Duel.adversaire_id == dueliste_id))
    if provocateur_id is not None:
        query = query.filter(Duel.provocateur_id == provocateur_id)
    if adversaire_id is not None:
        query = query.filter(Duel.adversaire_id == adversaire_id)
    if search:
        prov = aliased(Dueliste)
        adv = aliased(Dueliste)
        pattern = f"%{search.lower()}%"
        query = (
            query.join(prov, Duel.provocateur_id == prov.id)
            .join(adv, Duel.adversaire_id == adv.id)
            .filter(or_(db.func.lower(prov.pseudo).like(pattern), db.func.lower(adv.pseudo).like(pattern)))
        )
    query = query.order_by(Duel.date_proposition.desc(), Duel.id.desc())
    pagination = query.paginate(page=page, per_page=limit, error_out=False)
    return {
        'duels': [d.to_dict() for d in pagination.items],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': pagination.total,
            'pages': pagination.pages,
        },
    }


def parse_id_filter(value, field):
    if value is None or value == '':
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a positive integer', field=field)
    if parsed < 1:
        raise ValidationError(f'{field} must be a positive integer', field=field)
    return parsed
