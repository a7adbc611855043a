import pytest

from conftest import ADMIN_ID


def _new_duel(client, auth_headers, provocateur=1, adversaire=2):
    res = client.post('/api/duels', json={'adversaireId': adversaire}, headers=auth_headers(provocateur))
    assert res.status_code == 201
    return res.get_json()['id']


def _accept(client, auth_headers, duel_id, adversaire=2):
    client.post(f'/api/duels/{duel_id}/respond', json={'decision': 'ACCEPT'}, headers=auth_headers(adversaire))


def _force(client, headers, duel_id, sp, sa, raison='Arbitrage'):
    return client.post(f'/api/admin/duels/{duel_id}/force-validate',
                       json={'scoreProvocateur': sp, 'scoreAdversaire': sa, 'raison': raison},
                       headers=headers)


def test_admin_routes_require_capability(client, roster, auth_headers):
    duel_id = _new_duel(client, auth_headers)
    assert client.get('/api/admin/duels').status_code == 401
    res = client.get('/api/admin/duels', headers=auth_headers(1))
    assert res.status_code == 403
    assert res.get_json()['kind'] == 'permission_denied'
    assert _force(client, auth_headers(1), duel_id, 10, 5).status_code == 403
    assert client.delete(f'/api/admin/duels/{duel_id}', headers=auth_headers(2)).status_code == 403


def test_force_validate_from_propose(client, roster, auth_headers, admin_headers):
    duel_id = _new_duel(client, auth_headers)
    res = _force(client, admin_headers, duel_id, 3, 5, raison='Résultat papier')
    assert res.status_code == 200
    duel = res.get_json()
    assert duel['etat'] == 'VALIDE'
    assert duel['vainqueurId'] == 2
    assert duel['valideParAdmin'] is True
    assert duel['dateValidation'] is not None


def test_force_validate_clears_pending_proposal(client, roster, auth_headers, admin_headers):
    duel_id = _new_duel(client, auth_headers)
    _accept(client, auth_headers, duel_id)
    client.post(f'/api/duels/{duel_id}/score', json={'scoreProvocateur': 15, 'scoreAdversaire': 10},
                headers=auth_headers(1))
    res = _force(client, admin_headers, duel_id, 15, 12)
    assert res.get_json()['vainqueurId'] == 1
    assert client.get(f'/api/duels/{duel_id}/proposition', headers=auth_headers(2)).status_code == 404
    # a participant can no longer accept the stale proposal
    res = client.post(f'/api/duels/{duel_id}/proposition/accept', headers=auth_headers(2))
    assert res.status_code == 409


def test_force_validate_rejects_draw_and_range(client, roster, auth_headers, admin_headers):
    duel_id = _new_duel(client, auth_headers)
    res = _force(client, admin_headers, duel_id, 12, 12, raison='reason')
    assert res.status_code == 400
    assert res.get_json()['kind'] == 'validation_error'
    assert _force(client, admin_headers, duel_id, 60, 12).status_code == 400
    assert client.get(f'/api/duels/{duel_id}', headers=auth_headers(1)).get_json()['etat'] == 'PROPOSE'


def test_forced_draw_when_enabled(flask_app, client, roster, auth_headers, admin_headers):
    flask_app.config['ALLOW_FORCED_DRAW'] = True
    duel_id = _new_duel(client, auth_headers)
    res = _force(client, admin_headers, duel_id, 12, 12)
    assert res.status_code == 200
    assert res.get_json()['etat'] == 'VALIDE'
    assert res.get_json()['vainqueurId'] is None


def test_force_validate_twice_is_conflict(client, roster, auth_headers, admin_headers):
    duel_id = _new_duel(client, auth_headers)
    first = _force(client, admin_headers, duel_id, 5, 3).get_json()
    res = _force(client, admin_headers, duel_id, 3, 5)
    assert res.status_code == 409
    again = client.get(f'/api/duels/{duel_id}', headers=auth_headers(1)).get_json()
    assert again['dateValidation'] == first['dateValidation']
    assert again['vainqueurId'] == 1


def test_force_validate_refused_duel(client, roster, auth_headers, admin_headers):
    duel_id = _new_duel(client, auth_headers)
    client.post(f'/api/duels/{duel_id}/respond', json={'decision': 'REFUSE'}, headers=auth_headers(2))
    res = _force(client, admin_headers, duel_id, 1, 0)
    assert res.status_code == 200
    assert res.get_json()['etat'] == 'VALIDE'


def test_force_validate_missing_duel(client, roster, admin_headers):
    assert _force(client, admin_headers, 404, 5, 3).status_code == 404


def test_delete_then_everything_is_not_found(client, roster, auth_headers, admin_headers):
    duel_id = _new_duel(client, auth_headers)
    _accept(client, auth_headers, duel_id)
    client.post(f'/api/duels/{duel_id}/score', json={'scoreProvocateur': 15, 'scoreAdversaire': 10},
                headers=auth_headers(1))

    res = client.delete(f'/api/admin/duels/{duel_id}', json={'raison': 'Doublon'}, headers=admin_headers)
    assert res.status_code == 200
    data = res.get_json()
    assert data['ok'] is True
    assert data['duelSupprime']['etat'] == 'PROPOSE_SCORE'
    assert data['raison'] == 'Doublon'

    assert client.get(f'/api/duels/{duel_id}', headers=auth_headers(1)).status_code == 404
    assert client.get(f'/api/duels/{duel_id}/proposition', headers=auth_headers(1)).status_code == 404
    assert client.post(f'/api/duels/{duel_id}/proposition/accept', headers=auth_headers(2)).status_code == 404
    assert client.post(f'/api/duels/{duel_id}/score', json={'scoreProvocateur': 1, 'scoreAdversaire': 0},
                       headers=auth_headers(1)).status_code == 404
    assert _force(client, admin_headers, duel_id, 5, 3).status_code == 404
    assert client.delete(f'/api/admin/duels/{duel_id}', headers=admin_headers).status_code == 404


@pytest.mark.parametrize('etat_setup', ['PROPOSE', 'VALIDE', 'ANNULE'])
def test_delete_works_from_any_state(client, roster, auth_headers, admin_headers, etat_setup):
    duel_id = _new_duel(client, auth_headers)
    if etat_setup == 'VALIDE':
        _force(client, admin_headers, duel_id, 5, 3)
    elif etat_setup == 'ANNULE':
        client.post(f'/api/duels/{duel_id}/cancel', headers=auth_headers(1))
    res = client.delete(f'/api/admin/duels/{duel_id}', headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()['duelSupprime']['etat'] == etat_setup


def test_audit_log_records_overrides(client, roster, auth_headers, admin_headers):
    kept = _new_duel(client, auth_headers, 1, 2)
    removed = _new_duel(client, auth_headers, 1, 3)
    _force(client, admin_headers, kept, 10, 8, raison='Feuille de match')
    client.delete(f'/api/admin/duels/{removed}', json={'raison': 'Erreur de saisie'}, headers=admin_headers)

    actions = client.get('/api/admin/duels/audit', headers=admin_headers).get_json()['actions']
    assert [a['action'] for a in actions] == ['DELETE', 'FORCE_VALIDATE']
    delete, force = actions
    assert delete['duelId'] == removed
    assert delete['raison'] == 'Erreur de saisie'
    assert delete['adminId'] == ADMIN_ID
    assert delete['details']['adversaireId'] == 3
    assert force['etatAvant'] == 'PROPOSE'
    assert force['details'] == {'scoreProvocateur': 10, 'scoreAdversaire': 8, 'vainqueurId': 1}

    only_kept = client.get(f'/api/admin/duels/audit?duelId={kept}', headers=admin_headers).get_json()
    assert len(only_kept['actions']) == 1


def test_admin_list_and_stats(client, roster, auth_headers, admin_headers):
    a = _new_duel(client, auth_headers, 1, 2)
    _accept(client, auth_headers, a)
    client.post(f'/api/duels/{a}/score', json={'scoreProvocateur': 4, 'scoreAdversaire': 5},
                headers=auth_headers(1))
    _new_duel(client, auth_headers, 3, 1)
    c = _new_duel(client, auth_headers, 2, 3)
    _force(client, admin_headers, c, 5, 1)

    stats = client.get('/api/admin/duels/stats', headers=admin_headers).get_json()
    assert stats['total'] == 3
    assert stats['propositions'] == 1
    assert stats['conflits'] == 0
    assert stats['parEtat']['VALIDE'] == 1
    assert stats['parEtat']['PROPOSE'] == 1

    listed = client.get('/api/admin/duels?search=aram', headers=admin_headers).get_json()
    assert listed['pagination']['total'] == 2
    listed = client.get('/api/admin/duels?provocateurId=3', headers=admin_headers).get_json()
    assert [d['adversaireId'] for d in listed['duels']] == [1]
    listed = client.get('/api/admin/duels?etat=PROPOSE_SCORE', headers=admin_headers).get_json()
    assert [d['id'] for d in listed['duels']] == [a]
