import pytest

from server.app import create_app
from transport.dispatcher import VERSION, PrintService


@pytest.fixture
def transport(make_transport):
    return make_transport(printers=["POS-80", "Kitchen"])


@pytest.fixture
def client(transport):
    app = create_app(PrintService(transport))
    app.config["TESTING"] = True
    return app.test_client()


@pytest.mark.parametrize("path", ["/", "/health"])
def test_health(client, path):
    response = client.get(path)

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "version": VERSION, "printerName": "POS-80"}


def test_cors_headers(client):
    response = client.get("/", headers={"Origin": "http://localhost:3000"})

    assert response.headers["Access-Control-Allow-Origin"] in ("*", "http://localhost:3000")


def test_list_printers(client):
    body = client.get("/printers").get_json()

    assert [printer["Name"] for printer in body["printers"]] == ["POS-80", "Kitchen"]
    assert body["configured"] == "POS-80"


def test_print_flat_body(client, transport, sale_payload):
    response = client.post("/print", json={"sale": sale_payload, "business": {"name": "Shop"}, "template": "legal"})

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "message": "Printed successfully", "printer": "POS-80"}
    assert b"Shop\n" in transport.jobs[0][1]


def test_print_nested_data(client, transport, sale_payload):
    response = client.post("/print", json={"data": {"sale": sale_payload}, "printerName": "Kitchen"})

    assert response.status_code == 200
    assert transport.jobs[0][0] == "Kitchen"


def test_print_requires_sale(client, transport):
    response = client.post("/print", json={"business": {"name": "Shop"}})

    assert response.status_code == 400
    assert response.get_json()["success"] is False
    assert transport.jobs == []


def test_print_rejects_invalid_json(client):
    response = client.post("/print", data=b"{nope", content_type="application/json")

    assert response.status_code == 400
    assert response.get_json() == {"success": False, "error": "Invalid JSON body"}


def test_print_invalid_sale_is_a_client_error(client):
    response = client.post("/print", json={"sale": {"items": []}})

    assert response.status_code == 400
    assert "totalAmount" in response.get_json()["error"]


def test_print_device_failure_is_a_server_error(client, sale_payload):
    response = client.post("/print", json={"sale": sale_payload, "printerName": "Missing"})

    assert response.status_code == 500
    assert response.get_json() == {"success": False, "error": "Printer 'Missing' not found"}


def test_print_test_page(client, transport):
    response = client.post("/print/test", json={"printerName": "Kitchen"})

    assert response.status_code == 200
    assert response.get_json()["printer"] == "Kitchen"
    assert transport.jobs[0][0] == "Kitchen"


def test_print_test_page_without_body(client, transport):
    response = client.post("/print/test")

    assert response.status_code == 200
    assert transport.jobs[0][0] == "POS-80"


def test_print_test_page_device_failure(client):
    response = client.post("/print/test", json={"printerName": "Missing"})

    assert response.status_code == 500
    assert response.get_json()["success"] is False
