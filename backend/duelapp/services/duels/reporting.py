from duelapp import db
from duelapp.models import AdminAction, Duel


def duel_stats() -> dict:
    rows = db.session.query(Duel.etat, db.func.count(Duel.id)).group_by(Duel.etat).all()
    par_etat = {etat: 0 for etat in Duel.ETATS}
    par_etat.update({etat: count for etat, count in rows})
    return {
        'total': sum(par_etat.values()),
        'parEtat': par_etat,
        'conflits': par_etat[Duel.EN_ATTENTE_VALIDATION],
        'propositions': par_etat[Duel.PROPOSE_SCORE],
    }


def audit_log(duel_id=None, limit=50) -> list:
    query = AdminAction.query
    if duel_id is not None:
        query = query.filter_by(duel_id=duel_id)
    actions = query.order_by(AdminAction.created_at.desc(), AdminAction.id.desc()).limit(limit).all()
    return [a.to_dict() for a in actions]
