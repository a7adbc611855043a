from duelapp import socketio


def dueliste_room(dueliste_id) -> str:
    return f"dueliste:{dueliste_id}"


def notify_duel_update(duel_id, etat, participant_ids) -> None:
    """Tell both participants' sockets that the duel changed.

    Best effort only: clients still poll GET /api/duels/<id> for the truth.
    """
    payload = {'duelId': duel_id, 'etat': etat}
    for pid in participant_ids:
        socketio.emit('duel_update', payload, to=dueliste_room(pid), namespace='/ws')
