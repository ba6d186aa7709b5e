# tests/test_api.py
import csv
import io
from pathlib import Path

from sqlalchemy import text

from dairy_ledger.config import settings
from dairy_ledger.main import app, get_readers
from dairy_ledger.readers import ReportReaders, TransactionReader


def test_read_root(client):
    """Test the root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to the Dairy Ledger API"}


# --- Ledger ---

def test_create_and_list_milk_transactions(client):
    sale = {
        "date": "2024-03-01T06:00:00Z",
        "quantity": 5,
        "pricePerLiter": 50,
        "totalAmount": 250,
        "buyer": "Ramesh",
        "buyerPhone": " 9876543210 ",
    }
    response = client.post("/milk/sale", json=sale)
    assert response.status_code == 201
    body = response.json()
    assert body["type"] == "sale"
    assert body["buyerPhone"] == "9876543210"
    assert body["totalAmount"] == 250

    purchase = {
        "date": "2024-03-02T06:00:00Z",
        "quantity": 10,
        "pricePerLiter": 40,
        "totalAmount": 400,
        "sellerPhone": "   ",
    }
    response = client.post("/milk/purchase", json=purchase)
    assert response.status_code == 201
    assert response.json()["sellerPhone"] is None

    listing = client.get("/milk").json()
    assert [item["type"] for item in listing] == ["purchase", "sale"]

    mine = client.get("/milk", params={"mobile": "9876543210"}).json()
    assert len(mine) == 1


def test_sale_in_the_last_millisecond_of_the_day_is_reported(client):
    response = client.post("/milk/sale", json={
        "date": "2024-03-07T23:59:59.9995Z",
        "quantity": 2,
        "pricePerLiter": 50,
        "totalAmount": 100,
        "buyerPhone": "9876543210",
    })
    assert response.status_code == 201
    assert response.json()["date"].startswith("2024-03-07T23:59:59.999")

    data = client.get("/reports/dashboard-summary").json()
    assert data["dailySales"] == {"quantity": 2, "amount": 100, "transactions": 1}
    assert data["monthlySales"]["transactions"] == 1
    assert data["salesTrend"][-1]["date"] == "2024-03-07"
    assert data["salesTrend"][-1]["totalAmount"] == 100

    export = client.get("/reports/buyer-consumption/export", params={"year": 2024, "month": 3})
    assert export.text.split("\n")[1:] == ["Unknown Buyer,9876543210,2024-03-07,2.00,50.00,100.00"]


def test_milk_transaction_validation(client):
    response = client.post("/milk/sale", json={
        "date": "2024-03-01T06:00:00Z",
        "quantity": -1,
        "pricePerLiter": 50,
        "totalAmount": 50,
    })
    assert response.status_code == 422


def test_chara_endpoints(client):
    response = client.post("/chara/purchases", json={
        "date": "2024-03-07T08:00:00Z",
        "quantity": 20,
        "pricePerKg": 15,
        "totalAmount": 300,
        "supplier": "Green Fodder Co",
    })
    assert response.status_code == 201
    assert client.get("/chara/purchases").json()[0]["supplier"] == "Green Fodder Co"

    response = client.post("/chara/consumptions", json={
        "date": "2024-03-07T09:00:00Z",
        "quantity": 12.5,
        "animalName": "Gauri",
    })
    assert response.status_code == 201
    assert client.get("/chara/consumptions").json()[0]["quantity"] == 12.5


def test_buyer_registration(client):
    payload = {"name": "Asha Devi", "mobile": "9000000001", "milkFixedPrice": 55}
    response = client.post("/buyers", json=payload)
    assert response.status_code == 201
    assert response.json()["milkFixedPrice"] == 55

    assert client.post("/buyers", json=payload).status_code == 409
    assert client.post("/buyers", json={"name": "Bad", "mobile": "12345"}).status_code == 422
    assert [buyer["mobile"] for buyer in client.get("/buyers").json()] == ["9000000001"]


def test_animal_transactions(client):
    response = client.post("/animals/transactions", json={
        "type": "purchase",
        "date": "2024-03-04T10:00:00Z",
        "price": 45000,
        "animalName": "Gauri",
        "animalType": "cow",
    })
    assert response.status_code == 201
    assert client.get("/animals/transactions").json()[0]["price"] == 45000
    assert client.post("/animals/transactions", json={
        "type": "gift", "date": "2024-03-04T10:00:00Z", "price": 1,
    }).status_code == 422


def test_animal_registry(client):
    response = client.post("/animals", json={
        "name": " Gauri ",
        "type": "cow",
        "breed": "Gir",
        "age": 4,
        "purchasePrice": 45000,
    })
    assert response.status_code == 201
    animal = response.json()
    assert animal["name"] == "Gauri"
    assert animal["status"] == "active"

    assert client.post("/animals", json={"name": "Moti", "type": "buffalo", "status": "lost"}).status_code == 422
    assert [item["name"] for item in client.get("/animals").json()] == ["Gauri"]


def test_selling_a_registered_animal_marks_it_sold(client):
    animal_id = client.post("/animals", json={"name": "Gauri", "type": "cow", "breed": "Gir"}).json()["id"]

    response = client.post(f"/animals/{animal_id}/sale", json={
        "date": "2024-03-05T10:00:00Z",
        "price": 52000,
        "buyer": "Mohan",
        "buyerPhone": "9000000009",
    })
    assert response.status_code == 201
    sale = response.json()
    assert sale["animalId"] == animal_id
    assert sale["type"] == "sale"
    assert sale["animalName"] == "Gauri"
    assert sale["breed"] == "Gir"
    assert client.get("/animals").json()[0]["status"] == "sold"

    response = client.post(f"/animals/{animal_id}/purchase", json={"date": "2024-03-06T10:00:00Z", "price": 50000})
    assert response.status_code == 201
    assert client.get("/animals").json()[0]["status"] == "active"

    report = client.get("/reports/profit-loss", params={"period": "monthly"}).json()
    assert report["details"]["animalSales"] == 52000
    assert report["details"]["animalPurchases"] == 50000


def test_linked_animal_transaction_for_unknown_animal(client):
    response = client.post("/animals/999/sale", json={"date": "2024-03-05T10:00:00Z", "price": 1})
    assert response.status_code == 404
    assert response.json()["detail"] == "Animal not found"


def test_standalone_animal_sale_and_purchase(client):
    body = {"date": "2024-03-04T10:00:00Z", "price": 30000, "animalName": "Kali", "animalType": "buffalo"}
    assert client.post("/animals/sale", json=body).json()["type"] == "sale"
    purchase = client.post("/animals/purchase", json=body).json()
    assert purchase["type"] == "purchase"
    assert purchase["animalId"] is None
    assert len(client.get("/animals/transactions").json()) == 2


# --- Sellers ---

def test_seller_registration_and_listing(client):
    response = client.post("/sellers", json={
        "name": "Suresh Dairy",
        "mobile": "9123456789",
        "email": "suresh@example.com",
        "quantity": 40,
        "rate": 38,
    })
    assert response.status_code == 201
    seller = response.json()
    assert seller["mobile"] == "9123456789"
    assert seller["rate"] == 38

    sellers = client.get("/sellers").json()
    assert len(sellers) == 1
    assert sellers[0]["name"] == "Suresh Dairy"
    assert sellers[0]["email"] == "suresh@example.com"
    assert sellers[0]["userId"] == seller["userId"]

    # Seller-only accounts are not buyers
    assert client.get("/buyers").json() == []
    assert client.post("/sellers", json={"name": "Suresh Dairy", "mobile": "9123456789"}).status_code == 409


def test_existing_user_can_become_a_seller(client):
    buyer = client.post("/buyers", json={"name": "Asha Devi", "mobile": "9000000001"}).json()

    response = client.post("/sellers", json={"name": "Asha Devi", "mobile": "9000000001", "quantity": 10})
    assert response.status_code == 201
    assert response.json()["userId"] == buyer["id"]
    assert [item["mobile"] for item in client.get("/buyers").json()] == ["9000000001"]


# --- Reports ---

def test_dashboard_summary(client, march_sales):
    response = client.get("/reports/dashboard-summary", params={"trendPeriod": "weekly"})
    assert response.status_code == 200
    data = response.json()

    trend = {point["date"]: point["totalAmount"] for point in data["salesTrend"]}
    assert len(trend) == 7
    assert trend["2024-03-01"] == 250
    assert trend["2024-03-02"] == 180
    assert sum(1 for amount in trend.values() if amount == 0) == 5
    assert data["monthlySales"] == {"quantity": 8, "amount": 430, "transactions": 2}
    assert data["userConsumptions"][0]["name"] == "Ramesh Patel"
    assert data["selectedBuyer"] is None
    assert data["trendMetadata"]["periodLabel"] == "Weekly"


def test_dashboard_summary_with_buyer(client, march_sales):
    response = client.get(
        "/reports/dashboard-summary",
        params={"trendPeriod": "yearly", "buyerMobile": "9876543210"},
    )
    assert response.status_code == 200
    data = response.json()
    assert len(data["salesTrend"]) == 12
    buyer = data["selectedBuyer"]
    assert buyer["monthlySales"]["amount"] == 430
    assert buyer["averageRate"] == 430 / 8
    assert buyer["trend"][-1] == {"date": "2024-03", "label": "Mar", "totalQuantity": 8, "totalAmount": 430}


def test_dashboard_summary_invalid_period_and_no_data(client):
    response = client.get("/reports/dashboard-summary", params={"trendPeriod": "hourly"})
    assert response.status_code == 200
    data = response.json()
    assert data["trendMetadata"]["period"] == "weekly"
    assert data["dailyExpenses"] == 0
    assert data["userConsumptions"] == []


class FailingTransactionReader(TransactionReader):
    def find_transactions(self, transaction_type, start, end, buyer_mobile=None):
        raise RuntimeError("connection reset")


def test_dashboard_summary_storage_failure(client, db_session):
    def failing_readers():
        readers = ReportReaders.from_session(db_session)
        readers.transactions = FailingTransactionReader()
        return readers

    app.dependency_overrides[get_readers] = failing_readers
    response = client.get("/reports/dashboard-summary")
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch dashboard summary: connection reset"

    response = client.get("/reports/buyer-consumption/export")
    assert response.status_code == 500
    assert "connection reset" in response.json()["detail"]


def test_buyer_consumption_export(client, march_sales):
    response = client.get("/reports/buyer-consumption/export", params={"year": 2024, "month": 3})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="buyer-purchases-2024-03.csv"'

    lines = response.text.split("\n")
    assert len(lines) == 3
    assert [row[2] for row in csv.reader(io.StringIO(response.text))][1:] == ["2024-03-01", "2024-03-02"]


def test_buyer_consumption_export_defaults(client, march_sales):
    response = client.get(
        "/reports/buyer-consumption/export",
        params={"year": "soon", "month": "0", "buyerMobile": "9999999999"},
    )
    assert response.status_code == 200
    assert 'filename="buyer-purchases-2024-03.csv"' in response.headers["content-disposition"]
    assert response.text == "Buyer Name,Mobile,Date,Quantity (L),Price per L,Total Amount"


def test_profit_loss_endpoint(client, march_sales):
    response = client.get("/reports/profit-loss", params={"period": "monthly"})
    assert response.status_code == 200
    data = response.json()
    assert data["totalRevenue"] == 430
    assert data["profit"] == 430
    assert data["details"]["milkSales"] == 430
    assert data["details"]["otherExpenses"] == 0


# --- Bulk import ---

def test_upload_csv_success(client, db_session):
    csv_content = (
        "type,date,quantity,price_per_liter,total_amount,buyer_phone\n"
        "sale,2024-03-01 06:00:00,5,50,250,9876543210\n"
        "sale,2024-03-02 06:00:00,3,60,180,9876543210\n"
        "purchase,2024-03-02 07:00:00,10,40,400,"
    )
    file_bytes = io.BytesIO(csv_content.encode('utf-8'))
    response = client.post("/upload", files={"file": ("ledger.csv", file_bytes, "text/csv")})

    assert response.status_code == 200
    assert "accepted" in response.json()["message"]

    count = db_session.execute(text("SELECT COUNT(*) FROM milk_transactions")).scalar()
    assert count == 3

    summary = client.get("/reports/dashboard-summary").json()
    assert summary["monthlySales"]["amount"] == 430


def test_upload_invalid_file_type(client):
    """Test upload with invalid file type."""
    file_bytes = io.BytesIO(b"not a csv")
    response = client.post("/upload", files={"file": ("notes.txt", file_bytes, "text/plain")})
    assert response.status_code == 400
    assert "Invalid file type" in response.json()["detail"]


def test_upload_csv_missing_column(client):
    """
    Tests that the API rejects a CSV that is missing a required column.
    """
    csv_content = (
        "type,date,quantity,price_per_liter\n"
        "sale,2024-03-01 06:00:00,5,50"
    )
    file_bytes = io.BytesIO(csv_content.encode('utf-8'))

    response = client.post("/upload", files={"file": ("malformed.csv", file_bytes, "text/csv")})

    assert response.status_code == 400
    assert "missing required columns" in response.json()["detail"]


def test_upload_csv_corrupt_data(client):
    """
    Tests that the API rejects a CSV that has corrupt data in a numeric column.
    """
    csv_content = (
        "type,date,quantity,price_per_liter,total_amount\n"
        "sale,2024-03-01 06:00:00,abc,50,250"
    )
    file_bytes = io.BytesIO(csv_content.encode('utf-8'))

    response = client.post("/upload", files={"file": ("corrupt.csv", file_bytes, "text/csv")})

    assert response.status_code == 400
    assert "corrupt or malformed data" in response.json()["detail"]


def test_upload_leaves_no_files_behind(client):
    csv_content = (
        "type,date,quantity,price_per_liter,total_amount\n"
        "sale,2024-03-01 06:00:00,5,50,250"
    )
    response = client.post("/upload", files={"file": ("ledger.csv", io.BytesIO(csv_content.encode('utf-8')), "text/csv")})

    assert response.status_code == 200
    assert list(Path(settings.UPLOAD_DIR).glob("*.csv")) == []
