from ledger_engine.services.tenant_service import TenantService

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_requests_without_token_are_unauthorized(client, tenant):
    response = client.get("/api/v1/accounting/accounts")
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


def test_token_for_unknown_tenant_is_unauthorized(client, auth_headers):
    response = client.get("/api/v1/accounting/accounts", headers=auth_headers(tenant_id=999))
    assert response.status_code == 401


def test_create_and_list_accounts(client, auth_headers):
    headers = auth_headers()
    response = client.post(
        "/api/v1/accounting/accounts",
        json={"code": "1100", "name": "Accounts Receivable", "type": "asset"},
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["role"] == "receivable"

    duplicate = client.post(
        "/api/v1/accounting/accounts",
        json={"code": "1100", "name": "Other", "type": "asset"},
        headers=headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["kind"] == "conflict"

    listing = client.get("/api/v1/accounting/accounts", headers=headers).json()
    assert [a["code"] for a in listing["flat"]] == ["1100"]
    assert listing["tree"][0]["children"] == []


def test_post_and_read_journal_entry(client, auth_headers, accounts):
    headers = auth_headers()
    response = client.post(
        "/api/v1/accounting/journal-entries",
        json={
            "entry_date": "2024-01-10",
            "description": "Owner investment",
            "lines": [
                {"account_id": accounts["cash"].id, "debit": "500"},
                {"account_id": accounts["capital"].id, "credit": "500"},
            ],
        },
        headers=headers,
    )
    assert response.status_code == 201
    entry_id = response.json()["id"]

    entry = client.get(f"/api/v1/accounting/journal-entries/{entry_id}", headers=headers).json()
    assert entry["source_type"] == "manual"
    assert entry["created_by"] == 7
    assert [line["account_code"] for line in entry["lines"]] == ["1000", "3000"]

    page = client.get("/api/v1/accounting/journal-entries?page=1&page_size=5", headers=headers).json()
    assert (page["total"], page["page_size"]) == (1, 5)


def test_unbalanced_entry_is_unprocessable(client, auth_headers, accounts):
    response = client.post(
        "/api/v1/accounting/journal-entries",
        json={
            "entry_date": "2024-01-10",
            "lines": [
                {"account_id": accounts["cash"].id, "debit": "100"},
                {"account_id": accounts["capital"].id, "credit": "90"},
            ],
        },
        headers=auth_headers(),
    )
    assert response.status_code == 422
    body = response.json()
    assert body["kind"] == "unbalanced"
    assert body["details"] == {"debit_total": "100.00", "credit_total": "90.00"}


def test_missing_entry_is_not_found(client, auth_headers, tenant):
    response = client.get("/api/v1/accounting/journal-entries/404", headers=auth_headers())
    assert response.status_code == 404
    assert response.json()["kind"] == "reference"


def test_viewer_cannot_write(client, auth_headers):
    response = client.post(
        "/api/v1/accounting/accounts",
        json={"code": "1000", "name": "Cash", "type": "asset"},
        headers=auth_headers(role="viewer"),
    )
    assert response.status_code == 403
    assert response.json()["kind"] == "authz"


def test_accountant_cannot_delete_accounts(client, auth_headers, accounts):
    response = client.delete(
        f"/api/v1/accounting/accounts/{accounts['rent'].id}", headers=auth_headers(role="accountant")
    )
    assert response.status_code == 403

    response = client.delete(f"/api/v1/accounting/accounts/{accounts['rent'].id}", headers=auth_headers())
    assert response.status_code == 200


def test_disabled_module_is_forbidden(client, auth_headers, db, tenant):
    TenantService(db).set_modules(tenant.id, ["accounting", "reports"])
    response = client.get("/api/v1/inventory/items", headers=auth_headers())
    assert response.status_code == 403
    assert response.json()["detail"] == "Module 'inventory' is disabled"


def test_sale_invoice_over_http(client, auth_headers, accounts, widget):
    headers = auth_headers()
    response = client.post(
        "/api/v1/invoices",
        json={"invoice_date": "2024-03-15", "lines": [{"item_id": widget.id, "quantity": 2}]},
        headers=headers,
    )
    assert response.status_code == 201
    invoice = response.json()
    assert invoice["invoice_number"] == "INV-000001"
    assert invoice["status"] == "issued"
    assert invoice["total_amount"] == "100.00"
    assert invoice["journal_entry_id"] is not None

    too_many = client.post(
        "/api/v1/invoices",
        json={"invoice_date": "2024-03-15", "lines": [{"item_id": widget.id, "quantity": 9}]},
        headers=headers,
    )
    assert too_many.status_code == 409

    items = client.get("/api/v1/inventory/items", headers=headers).json()
    assert items[0]["quantity_on_hand"] == "8.00"


def test_trial_balance_json_and_xlsx(client, auth_headers, accounts):
    headers = auth_headers()
    params = {"date_from": "2024-01-01", "date_to": "2024-01-31"}

    report = client.get("/api/v1/accounting/trial-balance", params=params, headers=headers).json()
    assert report["totals"]["balanced"] is True
    assert len(report["lines"]) == len(accounts)

    download = client.get("/api/v1/accounting/trial-balance", params={**params, "format": "xlsx"}, headers=headers)
    assert download.status_code == 200
    assert download.headers["content-type"] == XLSX
    assert download.content[:2] == b"PK"


def test_trial_balance_import_upload(client, auth_headers, accounts, make_xlsx):
    content = make_xlsx(
        ["Account Code", "Account Name", "Debit", "Credit"],
        [["1000", "Cash", 250, 0], ["3000", "Owner Capital", 0, 250]],
    )
    response = client.post(
        "/api/v1/accounting/trial-balance/import",
        data={"date_from": "2024-01-01", "date_to": "2024-01-31", "post_to_ledger": "true"},
        files={"file": ("trial_balance.xlsx", content, XLSX)},
        headers=auth_headers(),
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["imported_rows"], body["created_accounts"], body["balanced"]) == (2, 0, True)
    assert body["journal_entry_id"] is not None


def test_empty_import_is_unprocessable(client, auth_headers, tenant, make_xlsx):
    response = client.post(
        "/api/v1/accounting/trial-balance/import",
        data={"date_from": "2024-01-01", "date_to": "2024-01-31"},
        files={"file": ("empty.xlsx", make_xlsx(["Code", "Debit", "Credit"], []), XLSX)},
        headers=auth_headers(),
    )
    assert response.status_code == 422
    assert response.json()["kind"] == "empty_source"


def test_reports_as_json_and_pdf(client, auth_headers, accounts):
    headers = auth_headers(role="viewer")
    params = {"date_from": "2024-01-01", "date_to": "2024-01-31"}

    income = client.get("/api/v1/reports/income-statement", params=params, headers=headers)
    assert income.status_code == 200
    assert income.json()["totals"]["net_profit"] == "0.00"

    sheet = client.get("/api/v1/reports/balance-sheet", params={"as_of": "2024-01-31"}, headers=headers).json()
    assert sheet["totals"]["is_balanced"] is True

    for path, query in (
        ("income-statement", params),
        ("balance-sheet", {"as_of": "2024-01-31"}),
        ("cash-flow", params),
    ):
        response = client.get(f"/api/v1/reports/{path}", params={**query, "format": "pdf"}, headers=headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")
