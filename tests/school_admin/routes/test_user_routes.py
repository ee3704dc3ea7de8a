def test_list_users_is_admin_only(client, make_user, auth_header) -> None:
    head = make_user('head', role='head_teacher')

    response = client.get('/users', headers=auth_header(head))

    assert response.status_code == 403


def test_list_users_paginates_and_filters(client, make_user, auth_header) -> None:
    admin = make_user('root', role='admin')
    for name in ('tina', 'tony', 'tess'):
        make_user(name, role='teacher')

    response = client.get('/users', headers=auth_header(admin), params={'role': 'teacher', 'limit': 2})

    assert response.status_code == 200
    body = response.json()
    assert body['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'pages': 2}
    assert all(user['role'] == 'teacher' for user in body['users'])
    assert all('password_hash' not in user for user in body['users'])


def test_get_user_profile(client, make_user, auth_header) -> None:
    head = make_user('head', role='head_teacher')
    tina = make_user('tina')

    found = client.get(f"/users/{tina['id']}", headers=auth_header(head))
    missing = client.get('/users/missing', headers=auth_header(head))

    assert found.status_code == 200
    assert found.json()['username'] == 'tina'
    assert 'password_hash' not in found.json()
    assert missing.status_code == 404


def test_get_user_profile_denied_for_teacher(client, make_user, auth_header) -> None:
    tina = make_user('tina')

    response = client.get(f"/users/{tina['id']}", headers=auth_header(tina))

    assert response.status_code == 403


def test_set_user_status(client, make_user, auth_header) -> None:
    admin = make_user('root', role='admin')
    tina = make_user('tina')

    response = client.patch(f"/users/{tina['id']}/status", headers=auth_header(admin), json={'is_active': False})

    assert response.status_code == 200
    assert not response.json()['is_active']
    # the disabled account can no longer use its token
    assert client.get('/auth/me', headers=auth_header(tina)).json()['error'] == 'Account disabled'


def test_set_user_status_rejects_self_deactivation(client, make_user, auth_header) -> None:
    admin = make_user('root', role='admin')

    response = client.patch(f"/users/{admin['id']}/status", headers=auth_header(admin), json={'is_active': False})

    assert response.status_code == 400
    assert response.json()['message'] == 'You cannot deactivate your own account'


def test_set_user_status_missing_user(client, make_user, auth_header) -> None:
    admin = make_user('root', role='admin')

    response = client.patch('/users/missing/status', headers=auth_header(admin), json={'is_active': True})

    assert response.status_code == 404
