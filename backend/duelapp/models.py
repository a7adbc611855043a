from datetime import datetime, timezone
import json

from duelapp import db


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Dueliste(db.Model):
    """Local mirror of the club roster: just enough to resolve participants."""
    __tablename__ = 'dueliste'

    ACTIF = 'ACTIF'
    INACTIF = 'INACTIF'

    id = db.Column(db.Integer, primary_key=True)
    pseudo = db.Column(db.String(64), unique=True, nullable=False, index=True)
    statut = db.Column(db.String(16), nullable=False, default=ACTIF)

    def to_dict(self):
        return {
            'id': self.id,
            'pseudo': self.pseudo,
            'statut': self.statut,
        }


class Duel(db.Model):
    __tablename__ = 'duel'

    PROPOSE = 'PROPOSE'
    ACCEPTE = 'ACCEPTE'
    A_JOUER = 'A_JOUER'
    PROPOSE_SCORE = 'PROPOSE_SCORE'
    EN_ATTENTE_VALIDATION = 'EN_ATTENTE_VALIDATION'
    VALIDE = 'VALIDE'
    REFUSE = 'REFUSE'
    ANNULE = 'ANNULE'

    ETATS = (PROPOSE, ACCEPTE, A_JOUER, PROPOSE_SCORE, EN_ATTENTE_VALIDATION, VALIDE, REFUSE, ANNULE)
    TERMINAL = (VALIDE, REFUSE, ANNULE)
    # A pair of duellistes may only have one of these at a time
    EN_COURS = (ACCEPTE, A_JOUER, PROPOSE_SCORE, EN_ATTENTE_VALIDATION)

    id = db.Column(db.Integer, primary_key=True)
    provocateur_id = db.Column(db.Integer, db.ForeignKey('dueliste.id'), nullable=False, index=True)
    adversaire_id = db.Column(db.Integer, db.ForeignKey('dueliste.id'), nullable=False, index=True)
    etat = db.Column(db.String(32), nullable=False, default=PROPOSE, index=True)
    notes = db.Column(db.Text, nullable=True)
    raison_refus = db.Column(db.String(200), nullable=True)

    date_proposition = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    date_programmee = db.Column(db.DateTime(timezone=True), nullable=True)
    date_acceptation = db.Column(db.DateTime(timezone=True), nullable=True)
    date_validation = db.Column(db.DateTime(timezone=True), nullable=True)
    date_derniere_proposition = db.Column(db.DateTime(timezone=True), nullable=True)

    score_provocateur = db.Column(db.Integer, nullable=True)
    score_adversaire = db.Column(db.Integer, nullable=True)
    vainqueur_id = db.Column(db.Integer, db.ForeignKey('dueliste.id'), nullable=True)
    valide_par_admin = db.Column(db.Boolean, nullable=False, default=False)
    nb_contre_propositions = db.Column(db.Integer, nullable=False, default=0)

    # Bumped on every UPDATE; a concurrent writer gets StaleDataError at flush
    version = db.Column(db.Integer, nullable=False)

    provocateur = db.relationship('Dueliste', foreign_keys=[provocateur_id])
    adversaire = db.relationship('Dueliste', foreign_keys=[adversaire_id])
    proposition = db.relationship(
        'Proposition', back_populates='duel', uselist=False, cascade='all, delete-orphan'
    )

    __mapper_args__ = {'version_id_col': version}

    def participant_ids(self):
        return (self.provocateur_id, self.adversaire_id)

    def is_participant(self, dueliste_id) -> bool:
        return dueliste_id in self.participant_ids()

    def other_participant(self, dueliste_id):
        return self.adversaire_id if dueliste_id == self.provocateur_id else self.provocateur_id

    def to_dict(self):
        return {
            'id': self.id,
            'provocateurId': self.provocateur_id,
            'adversaireId': self.adversaire_id,
            'provocateur': self.provocateur.to_dict() if self.provocateur else None,
            'adversaire': self.adversaire.to_dict() if self.adversaire else None,
            'etat': self.etat,
            'notes': self.notes,
            'raisonRefus': self.raison_refus,
            'dateProposition': _iso(self.date_proposition),
            'dateProgrammee': _iso(self.date_programmee),
            'dateAcceptation': _iso(self.date_acceptation),
            'dateValidation': _iso(self.date_validation),
            'dateDerniereProposition': _iso(self.date_derniere_proposition),
            'scoreProvocateur': self.score_provocateur,
            'scoreAdversaire': self.score_adversaire,
            'vainqueurId': self.vainqueur_id,
            'valideParAdmin': bool(self.valide_par_admin),
            'nbContrePropositions': self.nb_contre_propositions or 0,
            'version': self.version,
        }


class Proposition(db.Model):
    """The single outstanding score proposal of a duel in PROPOSE_SCORE."""
    __tablename__ = 'proposition'
    id = db.Column(db.Integer, primary_key=True)
    duel_id = db.Column(db.Integer, db.ForeignKey('duel.id', ondelete='CASCADE'), nullable=False, unique=True)
    score_provocateur = db.Column(db.Integer, nullable=False)
    score_adversaire = db.Column(db.Integer, nullable=False)
    propose_par = db.Column(db.Integer, db.ForeignKey('dueliste.id'), nullable=False)
    date_proposition = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    duel = db.relationship('Duel', back_populates='proposition')

    def to_dict(self, viewer_id=None):
        a_propose = viewer_id is not None and self.propose_par == viewer_id
        return {
            'duelId': self.duel_id,
            'etat': self.duel.etat if self.duel else None,
            'scoreProvocateur': self.score_provocateur,
            'scoreAdversaire': self.score_adversaire,
            'proposePar': self.propose_par,
            'dateProposition': _iso(self.date_proposition),
            'aPropose': a_propose,
            'peutRepondre': viewer_id is not None and not a_propose,
        }


class AdminAction(db.Model):
    """Audit row for administrative overrides. Survives deletion of the duel."""
    __tablename__ = 'admin_action'

    FORCE_VALIDATE = 'FORCE_VALIDATE'
    DELETE = 'DELETE'

    id = db.Column(db.Integer, primary_key=True)
    duel_id = db.Column(db.Integer, nullable=False, index=True)
    admin_id = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(32), nullable=False)
    raison = db.Column(db.Text, nullable=True)
    etat_avant = db.Column(db.String(32), nullable=True)
    details = db.Column(db.Text, nullable=True)  # JSON-encoded
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        try:
            details = json.loads(self.details) if self.details else None
        except ValueError:
            details = None
        return {
            'id': self.id,
            'duelId': self.duel_id,
            'adminId': self.admin_id,
            'action': self.action,
            'raison': self.raison,
            'etatAvant': self.etat_avant,
            'details': details,
            'createdAt': _iso(self.created_at),
        }
