# tests/test_users_api.py

"""
Tests for collaborator creation, editing and access grant endpoints.
"""

from fastapi.testclient import TestClient

from fisca.models import User, UserAccess


def _payload(role_id, access_levels, email="nuevo@fisca.test", **extra):
    body = {
        "email": email,
        "password": "secret123",
        "first_name": "Ana",
        "last_name": "Pérez",
        "role_id": role_id,
        "access_levels": access_levels,
    }
    body.update(extra)
    return body


def test_available_roles_for_admin(client: TestClient, admin, auth_headers):
    response = client.get("/api/users/available-roles", headers=auth_headers(admin))

    assert response.status_code == 200
    names = [role["name"] for role in response.json()]
    assert names[0] == "jefe_campana"
    assert "admin" not in names
    assert len(names) == 7


def test_available_roles_for_fiscal_general(client: TestClient, make_user, auth_headers):
    user = make_user("fiscal_general")
    response = client.get("/api/users/available-roles", headers=auth_headers(user))
    assert sorted(role["name"] for role in response.json()) == ["fiscal_mesa", "logistica"]


def test_assignable_levels_endpoint(client: TestClient, admin, auth_headers, role_id):
    response = client.get(
        "/api/users/assignable-levels",
        params={"role_id": role_id("fiscal_general")},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json() == [{"entity_type": "escuela", "multiple": False}]


def test_admin_creates_responsable_localidad(
    client: TestClient, admin, org, auth_headers, role_id, seeded_db,
):
    """Test that creation stores the user, its creator and its grants together."""
    response = client.post(
        "/api/users",
        json=_payload(role_id("responsable_localidad"), [
            {"entity_type": "localidad", "entity_id": org["localidad"]},
            {"entity_type": "circuitos", "entity_id": org["c2"]},
        ]),
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "responsable_localidad"
    assert data["created_by"] == admin.id
    assert [(a["entity_type"], a["entity_id"]) for a in data["access_levels"]] == [
        ("localidad", org["localidad"]),
        ("circuito", org["c2"]),
    ]


def test_create_requires_subordinate_role(client: TestClient, make_user, org, auth_headers, role_id):
    user = make_user("fiscal_general", grants=[("escuela", org["e1"])])

    response = client.post(
        "/api/users",
        json=_payload(role_id("responsable_circuito"), [
            {"entity_type": "escuela", "entity_id": org["e1"]},
        ]),
        headers=auth_headers(user),
    )

    assert response.status_code == 403
    assert response.json()["error"] == "AuthorizationDenied"


def test_create_with_no_assignable_levels_is_denied(
    client: TestClient, make_user, org, auth_headers, role_id, seeded_db,
):
    """Test that an empty resolver result never produces an unscoped account."""
    user = make_user("fiscal_general", grants=[("escuela", org["e1"])])

    response = client.post(
        "/api/users",
        json=_payload(role_id("logistica"), []),
        headers=auth_headers(user),
    )

    assert response.status_code == 403
    assert seeded_db.query(User).filter(User.email == "nuevo@fisca.test").count() == 0


def test_create_without_levels_is_invalid(client: TestClient, admin, auth_headers, role_id):
    response = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), []),
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["message"] == "At least one access level must be selected"


def test_create_rejects_second_mesa(client: TestClient, admin, org, auth_headers, role_id):
    response = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), [
            {"entity_type": "mesa", "entity_id": org["mesas"][1]},
            {"entity_type": "mesa", "entity_id": org["mesas"][2]},
        ]),
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


def test_create_rejects_unassignable_level(client: TestClient, admin, org, auth_headers, role_id):
    response = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_general"), [
            {"entity_type": "mesa", "entity_id": org["mesas"][1]},
        ]),
        headers=auth_headers(admin),
    )
    assert response.status_code == 403


def test_create_rejects_unknown_level(client: TestClient, admin, auth_headers, role_id):
    response = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), [{"entity_type": "provincia", "entity_id": 1}]),
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidLevel"


def test_create_rejects_missing_entity(client: TestClient, admin, org, auth_headers, role_id):
    response = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), [{"entity_type": "mesa", "entity_id": 9999}]),
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "DanglingReference"


def test_create_outside_own_scope_is_denied(
    client: TestClient, make_user, org, auth_headers, role_id,
):
    """Test that a fiscal general may only hand out mesas inside its escuela."""
    user = make_user("fiscal_general", grants=[("escuela", org["e1"])])

    inside = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), [
            {"entity_type": "mesa", "entity_id": org["mesas"][3]},
        ]),
        headers=auth_headers(user),
    )
    outside = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), [
            {"entity_type": "mesa", "entity_id": org["mesas"][6]},
        ], email="otro@fisca.test"),
        headers=auth_headers(user),
    )

    assert inside.status_code == 201
    assert inside.json()["created_by"] == user.id
    assert outside.status_code == 403


def test_create_duplicate_email_conflicts(client: TestClient, admin, org, auth_headers, role_id):
    body = _payload(role_id("fiscal_mesa"), [
        {"entity_type": "mesa", "entity_id": org["mesas"][1]},
    ])
    assert client.post("/api/users", json=body, headers=auth_headers(admin)).status_code == 201

    response = client.post("/api/users", json=body, headers=auth_headers(admin))

    assert response.status_code == 409
    assert response.json()["error"] == "ResourceConflictError"


def test_request_validation_uses_envelope(client: TestClient, admin, auth_headers):
    response = client.post("/api/users", json={"email": "x"}, headers=auth_headers(admin))
    assert response.status_code == 422
    assert response.json()["success"] is False
    assert response.json()["error"] == "ValidationError"


def test_role_change_without_levels_clears_grants(
    client: TestClient, admin, org, make_user, auth_headers, role_id, seeded_db,
):
    target = make_user("logistica", grants=[("circuito", org["c1"])], created_by=admin)

    response = client.put(
        f"/api/users/{target.id}",
        json={"role_id": role_id("responsable_circuito")},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["role"] == "responsable_circuito"
    assert response.json()["access_levels"] == []


def test_update_replaces_levels(client: TestClient, admin, org, make_user, auth_headers):
    target = make_user("logistica", grants=[("circuito", org["c1"])], created_by=admin)

    response = client.put(
        f"/api/users/{target.id}",
        json={"first_name": "Luis", "access_levels": [
            {"entity_type": "escuela", "entity_id": org["e12"]},
        ]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["first_name"] == "Luis"
    assert [(a["entity_type"], a["entity_id"]) for a in data["access_levels"]] == [
        ("escuela", org["e12"]),
    ]


def test_failed_update_keeps_previous_grants(
    client: TestClient, admin, org, make_user, auth_headers,
):
    target = make_user("logistica", grants=[("circuito", org["c1"])], created_by=admin)

    response = client.put(
        f"/api/users/{target.id}",
        json={"access_levels": [
            {"entity_type": "circuito", "entity_id": org["c2"]},
            {"entity_type": "escuela", "entity_id": 9999},
        ]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    access = client.get(f"/api/users/{target.id}/access", headers=auth_headers(admin)).json()
    assert [(a["entity_type"], a["entity_id"]) for a in access] == [("circuito", org["c1"])]


def test_only_creator_or_admin_may_edit(client: TestClient, org, make_user, auth_headers):
    creator = make_user("responsable_localidad", grants=[("localidad", org["localidad"])])
    other = make_user("responsable_localidad", grants=[("localidad", org["localidad"])])
    target = make_user("logistica", grants=[("circuito", org["c1"])], created_by=creator)

    denied = client.put(
        f"/api/users/{target.id}", json={"last_name": "X"}, headers=auth_headers(other),
    )
    allowed = client.put(
        f"/api/users/{target.id}", json={"last_name": "X"}, headers=auth_headers(creator),
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200


def test_list_users_scoped_to_creator(client: TestClient, admin, org, make_user, auth_headers):
    creator = make_user("responsable_localidad", grants=[("localidad", org["localidad"])])
    mine = make_user("logistica", created_by=creator)
    make_user("logistica", created_by=admin)

    as_creator = client.get("/api/users", headers=auth_headers(creator)).json()
    as_admin = client.get("/api/users", headers=auth_headers(admin)).json()

    assert [u["id"] for u in as_creator["users"]] == [mine.id]
    assert as_admin["total"] == 4


def test_delete_user_cascades_grants(
    client: TestClient, admin, org, make_user, auth_headers, seeded_db,
):
    target = make_user("logistica", grants=[("circuito", org["c1"])], created_by=admin)
    target_id = target.id

    response = client.delete(f"/api/users/{target_id}", headers=auth_headers(admin))

    assert response.status_code == 200
    seeded_db.expire_all()
    assert seeded_db.query(UserAccess).filter(UserAccess.user_id == target_id).count() == 0


def test_cannot_delete_self(client: TestClient, admin, auth_headers):
    response = client.delete(f"/api/users/{admin.id}", headers=auth_headers(admin))
    assert response.status_code == 400


def test_add_and_revoke_single_grant(client: TestClient, admin, org, make_user, auth_headers):
    target = make_user("logistica", grants=[("circuito", org["c1"])], created_by=admin)

    added = client.post(
        f"/api/users/{target.id}/access",
        json={"entity_type": "circuito", "entity_id": org["c2"]},
        headers=auth_headers(admin),
    )
    duplicate = client.post(
        f"/api/users/{target.id}/access",
        json={"entity_type": "circuito", "entity_id": org["c2"]},
        headers=auth_headers(admin),
    )
    revoked = client.delete(
        f"/api/users/{target.id}/access/circuito/{org['c1']}", headers=auth_headers(admin),
    )

    assert added.status_code == 201
    assert added.json()["entity_name"] == "Circuito 2"
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "DuplicateGrant"
    assert revoked.status_code == 200
    access = client.get(f"/api/users/{target.id}/access", headers=auth_headers(admin)).json()
    assert [a["entity_id"] for a in access] == [org["c2"]]


def test_single_grant_on_single_level_replaces(
    client: TestClient, admin, org, make_user, auth_headers,
):
    target = make_user("fiscal_mesa", grants=[("mesa", org["mesas"][1])], created_by=admin)

    response = client.post(
        f"/api/users/{target.id}/access",
        json={"entity_type": "mesa", "entity_id": org["mesas"][2]},
        headers=auth_headers(admin),
    )

    assert response.status_code == 201
    access = client.get(f"/api/users/{target.id}/access", headers=auth_headers(admin)).json()
    assert [a["entity_id"] for a in access] == [org["mesas"][2]]


def test_clear_access(client: TestClient, admin, org, make_user, auth_headers):
    target = make_user(
        "logistica", grants=[("circuito", org["c1"]), ("circuito", org["c2"])], created_by=admin,
    )

    response = client.delete(f"/api/users/{target.id}/access", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["detail"] == {"deleted": 2}


def test_my_access(client: TestClient, org, make_user, auth_headers):
    user = make_user("logistica", grants=[("escuela", org["e5"])])
    response = client.get("/api/users/me/access", headers=auth_headers(user))
    assert [a["entity_name"] for a in response.json()] == ["Escuela N° 5 Manuel Belgrano"]


def test_blank_dni_and_telefono_are_stored_as_null(
    client: TestClient, admin, org, auth_headers, role_id, seeded_db,
):
    """Test that several users may leave DNI and phone empty."""
    responses = [
        client.post(
            "/api/users",
            json=_payload(role_id("fiscal_mesa"), [
                {"entity_type": "mesa", "entity_id": org["mesas"][n]},
            ], email=f"blank{n}@fisca.test", dni="", telefono="  "),
            headers=auth_headers(admin),
        )
        for n in (1, 2)
    ]

    assert [r.status_code for r in responses] == [201, 201]
    assert [(r.json()["dni"], r.json()["telefono"]) for r in responses] == [(None, None)] * 2


def test_duplicate_dni_conflicts(client: TestClient, admin, org, auth_headers, role_id):
    first = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), [
            {"entity_type": "mesa", "entity_id": org["mesas"][1]},
        ], email="a@fisca.test", dni="30111222"),
        headers=auth_headers(admin),
    )
    second = client.post(
        "/api/users",
        json=_payload(role_id("fiscal_mesa"), [
            {"entity_type": "mesa", "entity_id": org["mesas"][2]},
        ], email="b@fisca.test", dni="30111222"),
        headers=auth_headers(admin),
    )

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["message"] == "El DNI ya está registrado en el sistema"


def test_creator_loses_control_once_user_outranks_them(
    client: TestClient, admin, org, make_user, auth_headers, role_id,
):
    """Test that a promoted collaborator is no longer managed by its lower-ranked creator."""
    creator = make_user("responsable_circuito", grants=[("circuito", org["c1"])])
    target = make_user("fiscal_mesa", grants=[("mesa", org["mesas"][1])], created_by=creator)

    promoted = client.put(
        f"/api/users/{target.id}",
        json={"role_id": role_id("jefe_campana")},
        headers=auth_headers(admin),
    )
    hijack = client.put(
        f"/api/users/{target.id}", json={"password": "hijacked1"}, headers=auth_headers(creator),
    )
    delete = client.delete(f"/api/users/{target.id}", headers=auth_headers(creator))
    login = client.post(
        "/api/auth/login", json={"email": target.email, "password": "hijacked1"},
    )

    assert promoted.status_code == 200
    assert hijack.status_code == 403
    assert hijack.json()["error"] == "AuthorizationDenied"
    assert delete.status_code == 403
    assert login.status_code == 401
