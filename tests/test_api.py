def test_login_rejects_unknown_non_demo_email(client):
    resp = client.post("/login", json={"email": "nobody@nowhere.org"})
    assert resp.status_code == 401


def test_demo_login_creates_role_from_local_part(client):
    resp = client.post("/login", json={"email": "admin@example.com"})
    assert resp.status_code == 200
    assert resp.get_json()["role"] == "admin"

    assert client.get("/me").get_json()["email"] == "admin@example.com"


def test_me_requires_login(client):
    resp = client.get("/me")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "unauthenticated"


def test_signup_duplicate_email(client, users):
    resp = client.post("/signup", json={"name": "Sarah Again", "email": "SARAH@example.com"})
    assert resp.status_code == 409


def test_client_conversation_scoping(client, login, users, make_conversation):
    mine = make_conversation(title="mine", participants=[users.client])
    theirs = make_conversation(title="theirs", participants=[users.other_client])
    login(users.client)

    listed = client.get("/api/conversations").get_json()
    assert [c["id"] for c in listed] == [mine.id]
    assert client.get(f"/api/conversations/{theirs.id}").status_code == 403
    assert client.get("/api/conversations/99999").status_code == 404


def test_client_cannot_send_quote(client, login, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    login(users.client)

    resp = client.post(
        f"/api/conversations/{shipment.conversation_id}/messages",
        json={"kind": "quote", "text": "Cheap!", "payload": {"amount_cents": 1}},
    )
    assert resp.status_code == 403
    assert client.get(f"/api/shipments/{shipment.id}").get_json()["status"] == "quote_requested"


def test_staff_quote_moves_shipment(client, login, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    login(users.staff)

    resp = client.post(
        f"/api/conversations/{shipment.conversation_id}/messages",
        json={"kind": "quote", "text": "Here is your quote", "payload": {"amount_cents": 125000}},
    )
    assert resp.status_code == 201
    assert client.get(f"/api/shipments/{shipment.id}").get_json()["status"] == "quote_sent"


def test_staff_records_payment(client, login, users, make_shipment):
    shipment = make_shipment(participants=[users.client], status="quote_sent", total_amount_cents=100000)
    login(users.staff)

    resp = client.post(
        f"/api/shipments/{shipment.id}/payments",
        json={"amount_cents": 100000, "method": "stripe", "transaction_id": "pi_123"},
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["payment_status"] == "paid"
    assert body["status"] == "booking_confirmed"
    assert body["outstanding_cents"] == 0
    assert body["payment_history"][0]["transaction_id"] == "pi_123"


def test_client_cannot_record_payment(client, login, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    login(users.client)
    resp = client.post(f"/api/shipments/{shipment.id}/payments", json={"amount_cents": 100})
    assert resp.status_code == 403


def test_validation_errors_are_400(client, login, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    login(users.staff)
    resp = client.post(f"/api/shipments/{shipment.id}/payments", json={"amount_cents": -5})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"


def test_submit_quote_request(client, login, users):
    login(users.client)
    resp = client.post(
        "/api/quote-requests",
        json={
            "pet_name": "Rex",
            "pet_type": "dog",
            "route": {"from": "LAX", "to": "GUM"},
        },
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["shipment_id"] is not None

    shipment = client.get(f"/api/shipments/{body['shipment_id']}").get_json()
    assert shipment["status"] == "quote_requested"
    assert shipment["conversation_id"] == body["conversation_id"]


def test_invoice_pdf(client, login, users, make_shipment):
    shipment = make_shipment(
        participants=[users.client],
        total_amount_cents=125000,
        line_items=[{"description": "Door-to-door shipping", "amount_cents": 125000, "category": "shipping"}],
    )
    login(users.client)

    resp = client.get(f"/api/shipments/{shipment.id}/invoice.pdf")
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert resp.data.startswith(b"%PDF")


def test_passwordless_account_needs_demo_login(app, client, users):
    app.config["DEMO_LOGIN_ENABLED"] = False

    resp = client.post("/login", json={"email": users.admin.email})
    assert resp.status_code == 401
    assert client.get("/me").status_code == 401


def test_password_login_without_demo(app, db, client, users):
    from petship.utils.passwords import hash_password

    app.config["DEMO_LOGIN_ENABLED"] = False
    users.admin.password_hash = hash_password("correct horse battery")
    db.session.commit()

    assert client.post("/login", json={"email": users.admin.email, "password": "wrong password"}).status_code == 401
    resp = client.post("/login", json={"email": users.admin.email, "password": "correct horse battery"})
    assert resp.status_code == 200
    assert resp.get_json()["role"] == "admin"


def test_signup_requires_password_without_demo(app, client):
    app.config["DEMO_LOGIN_ENABLED"] = False
    resp = client.post("/signup", json={"name": "Nia", "email": "nia@example.org"})
    assert resp.status_code == 400


def test_create_admin_requires_password(app, db):
    from petship.models import User

    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-admin", "--email", "root@petshippers.com", "--name", "Root"], input="")
    assert result.exit_code != 0
    assert User.query.filter_by(email="root@petshippers.com").first() is None

    result = runner.invoke(
        args=["create-admin", "--email", "root@petshippers.com", "--name", "Root", "--password", "s3cret-enough"]
    )
    assert result.exit_code == 0, result.output
    admin = User.query.filter_by(email="root@petshippers.com").one()
    assert admin.role == "admin"
    assert admin.password_hash
