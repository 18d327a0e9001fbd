from datetime import date


def add_book(client, headers, **overrides):
    payload = {
        "name": "The Selfish Gene",
        "author": "Richard Dawkins",
        "category": "Science",
        "cost": 499,
        "quantity": 3,
        "procurementDate": "2023-12-01",
    }
    payload.update(overrides)
    resp = client.post("/api/books", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def add_membership(client, headers, aadhar="1111-2222-3333", **overrides):
    payload = {
        "firstName": "Ravi",
        "lastName": "Kumar",
        "contactNumber": "9000000001",
        "contactAddress": "4 Park Street, Kolkata",
        "aadharCardNo": aadhar,
        "startDate": "2024-01-01",
        "membershipType": "6 months",
    }
    payload.update(overrides)
    resp = client.post("/api/membership", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_requests_need_a_token(client):
    resp = client.get("/api/books")
    assert resp.status_code == 401


def test_login_rejects_bad_password(client):
    resp = client.post("/api/auth/login", json={"userId": "admin", "password": "nope"})
    assert resp.status_code == 401


def test_me_returns_current_user(client, admin_headers):
    resp = client.get("/api/auth/me", headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["userId"] == "admin"
    assert body["isAdmin"] is True


def test_add_book_mints_serial(client, admin_headers):
    book = add_book(client, admin_headers)
    assert book["serialNo"] == "SC(B/M)000001"
    assert book["availableCopies"] == 3
    assert book["status"] == "Available"
    assert book["itemType"] == "Book"


def test_add_movie_and_search(client, admin_headers):
    resp = client.post(
        "/api/movies",
        json={"name": "Interstellar", "director": "Christopher Nolan", "category": "Science", "cost": 250, "quantity": 1},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["serialNo"] == "SC(B/M)000001"

    resp = client.get("/api/movies/search", params={"query": "nolan"}, headers=admin_headers)
    assert [m["name"] for m in resp.json()] == ["Interstellar"]

    resp = client.get("/api/movies/search", headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"msg": "query: Field required"}


def test_update_book_quantity_moves_available_copies(client, admin_headers):
    book = add_book(client, admin_headers)
    resp = client.put("/api/books", json={"serialNo": book["serialNo"], "quantity": 5}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["quantity"] == 5
    assert resp.json()["availableCopies"] == 5

    resp = client.put(
        "/api/books",
        json={"originalName": " the selfish gene ", "originalAuthor": "RICHARD DAWKINS", "quantity": 1},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["availableCopies"] == 1


def test_update_book_by_serial_path(client, admin_headers):
    book = add_book(client, admin_headers)
    resp = client.put(f"/api/books/{book['serialNo']}", json={"status": "Damaged"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "Damaged"

    resp = client.get("/api/books/available", headers=admin_headers)
    assert resp.json() == []


def test_membership_lifecycle(client, admin_headers):
    member = add_membership(client, admin_headers)
    assert member["membershipId"] == "MEM000001"
    assert member["endDate"] == "2024-07-01"
    assert member["status"] == "Active"

    resp = client.post(
        "/api/membership",
        json={
            "firstName": "Other",
            "lastName": "Person",
            "contactNumber": "1",
            "contactAddress": "x",
            "aadharCardNo": "1111-2222-3333",
            "startDate": "2024-01-01",
            "membershipType": "1 year",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 400

    resp = client.put("/api/membership/MEM000001", json={"action": "extend", "extensionType": "1 year"}, headers=admin_headers)
    assert resp.json()["endDate"] == "2025-07-01"
    assert resp.json()["membershipType"] == "1 year"

    resp = client.put("/api/membership/MEM000001", json={"action": "cancel"}, headers=admin_headers)
    assert resp.json()["status"] == "Cancelled"
    assert resp.json()["endDate"] == date.today().isoformat()

    resp = client.get("/api/membership/active", headers=admin_headers)
    assert resp.json() == []


def test_issue_return_and_pay_over_http(client, admin_headers):
    book = add_book(client, admin_headers)
    add_membership(client, admin_headers)

    resp = client.post(
        "/api/issue",
        json={
            "serialNo": book["serialNo"],
            "itemType": "Book",
            "membershipId": "MEM000001",
            "issueDate": "2024-01-01",
            "returnDate": "2024-01-10",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    issue = resp.json()
    assert issue["issueId"].startswith("ISS-")
    assert issue["issueId"].endswith("-0001")
    assert issue["issuedBy"] == "admin"
    assert issue["memberName"] == "Ravi Kumar"

    resp = client.get("/api/issue/member/MEM000001", headers=admin_headers)
    assert [i["issueId"] for i in resp.json()] == [issue["issueId"]]

    resp = client.post(
        "/api/return",
        json={"serialNo": book["serialNo"], "membershipId": "MEM000001", "actualReturnDate": "2024-01-15"},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["fineAmount"] == 25
    assert resp.json()["fineId"] == "FINE000001"

    resp = client.get("/api/fine/member/MEM000001", headers=admin_headers)
    assert [f["fineId"] for f in resp.json()] == ["FINE000001"]
    assert resp.json()[0]["daysOverdue"] == 5

    resp = client.get("/api/membership/MEM000001", headers=admin_headers)
    assert resp.json()["amountPending"] == 25

    # pending fine blocks the next issue
    resp = client.post(
        "/api/issue",
        json={
            "serialNo": book["serialNo"],
            "itemType": "Book",
            "membershipId": "MEM000001",
            "issueDate": "2024-01-16",
            "returnDate": "2024-01-26",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json() == {"msg": "Please clear pending fine first"}

    resp = client.put("/api/fine/pay/FINE000001", json={"paidDate": "2024-01-16"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["msg"] == "Fine paid successfully"
    assert resp.json()["fine"]["finePaid"] is True

    resp = client.get("/api/membership/MEM000001", headers=admin_headers)
    assert resp.json()["amountPending"] == 0
    resp = client.get("/api/fine/pending", headers=admin_headers)
    assert resp.json() == []


def test_circulation_errors_use_msg_body(client, admin_headers):
    resp = client.post(
        "/api/issue",
        json={"serialNo": "SC(B/M)000404", "itemType": "Book", "issueDate": "2024-01-01", "returnDate": "2024-01-10"},
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert resp.json() == {"msg": "Item not found"}

    resp = client.post(
        "/api/return",
        json={"serialNo": "SC(B/M)000404", "membershipId": "MEM000001", "actualReturnDate": "2024-01-10"},
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert resp.json() == {"msg": "Active issue not found"}

    resp = client.put("/api/fine/pay/FINE000404", json={}, headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {"msg": "Fine not found"}


def test_issue_rejects_due_date_before_issue_date(client, admin_headers):
    book = add_book(client, admin_headers)
    resp = client.post(
        "/api/issue",
        json={"serialNo": book["serialNo"], "itemType": "Book", "issueDate": "2024-01-10", "returnDate": "2024-01-01"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert "returnDate cannot be before issueDate" in resp.json()["msg"]


def test_malformed_requests_are_client_errors(client, admin_headers):
    resp = client.post(
        "/api/issue",
        json={"itemType": "Book", "issueDate": "2024-01-01", "returnDate": "2024-01-10"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json() == {"msg": "serialNo: Field required"}

    resp = client.post(
        "/api/issue",
        json={"serialNo": "SC(B/M)000001", "itemType": "Magazine", "issueDate": "2024-01-01", "returnDate": "2024-01-10"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["msg"].startswith("itemType:")

    resp = client.post("/api/return", json={"serialNo": "SC(B/M)000001"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json() == {"msg": "actualReturnDate: Field required"}


def test_not_found_and_auth_errors_use_msg_body(client, admin_headers):
    resp = client.get("/api/membership/MEM000404", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {"msg": "Membership not found"}

    resp = client.put("/api/books", json={"serialNo": "SC(B/M)000404", "quantity": 2}, headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {"msg": "Book not found"}

    resp = client.get("/api/books")
    assert resp.status_code == 401
    assert "msg" in resp.json()


def test_guest_loan_and_overdue_report(client, admin_headers):
    book = add_book(client, admin_headers, quantity=1)
    resp = client.post(
        "/api/issue",
        json={"serialNo": book["serialNo"], "itemType": "Book", "issueDate": "2024-01-01", "returnDate": "2024-01-10"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["membershipId"] == "GUEST"
    assert resp.json()["memberName"] == "Guest"

    resp = client.get("/api/books/available", headers=admin_headers)
    assert resp.json() == []

    resp = client.get("/api/reports/overdue-returns", headers=admin_headers)
    rows = resp.json()
    assert len(rows) == 1
    assert rows[0]["daysOverdue"] > 0
    assert rows[0]["fineAmount"] == rows[0]["daysOverdue"] * 5

    resp = client.get("/api/issue/overdue", headers=admin_headers)
    assert len(resp.json()) == 1

    resp = client.post(
        "/api/return",
        json={"serialNo": book["serialNo"], "actualReturnDate": "2024-01-10"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["fineAmount"] == 0

    resp = client.get("/api/reports/active-issues", headers=admin_headers)
    assert resp.json() == []


def test_reports_master_lists(client, admin_headers):
    add_book(client, admin_headers, name="Zen", category="Fiction")
    add_book(client, admin_headers, name="Atoms", category="Science")
    add_book(client, admin_headers, name="Bonds", category="Economics")
    resp = client.get("/api/reports/master-books", headers=admin_headers)
    assert [(b["category"], b["name"]) for b in resp.json()] == [
        ("Economics", "Bonds"),
        ("Fiction", "Zen"),
        ("Science", "Atoms"),
    ]


def test_maintenance_users_and_permissions(client, admin_headers):
    resp = client.post(
        "/api/maintenance/users",
        json={"userId": "clerk", "name": "Front Desk", "password": "secret1"},
        headers=admin_headers,
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["isAdmin"] is False

    resp = client.post(
        "/api/maintenance/users",
        json={"userId": "clerk", "name": "Again", "password": "secret1"},
        headers=admin_headers,
    )
    assert resp.status_code == 400

    resp = client.post("/api/auth/login", json={"userId": "clerk", "password": "secret1"})
    clerk_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    # librarians can list but not add
    assert client.get("/api/books", headers=clerk_headers).status_code == 200
    resp = client.post(
        "/api/books",
        json={"name": "X", "author": "Y", "category": "Science", "cost": 1, "quantity": 1},
        headers=clerk_headers,
    )
    assert resp.status_code == 403

    resp = client.put("/api/maintenance/users/clerk", json={"active": False}, headers=admin_headers)
    assert resp.json()["isActive"] is False
    resp = client.post("/api/auth/login", json={"userId": "clerk", "password": "secret1"})
    assert resp.status_code == 401

    resp = client.get("/api/maintenance/users", headers=admin_headers)
    assert "hashedPassword" not in resp.json()[0]

    resp = client.get("/api/auth/logs", headers=admin_headers)
    events = [e["event"] for e in resp.json()]
    assert "login_failed" in events
    assert "login_success" in events


def test_elevate_user_grants_admin(client, admin_headers):
    import elevate_user

    client.post(
        "/api/maintenance/users",
        json={"userId": "desk2", "name": "Evening Desk", "password": "secret2"},
        headers=admin_headers,
    )
    elevate_user.run("desk2")

    resp = client.post("/api/auth/login", json={"userId": "desk2", "password": "secret2"})
    assert resp.json()["is_admin"] is True
    assert resp.json()["role"] == "admin"
