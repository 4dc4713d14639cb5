"""Pytest configuration and fixtures for all tests."""

import os

import pytest

# Set test environment variables before importing settings
os.environ["APP_ENV"] = "testing"
os.environ["LOG_FORMAT"] = "console"
os.environ["GMAIL_CREDENTIALS_PATH"] = "/tmp/test_gmail_creds.json"
os.environ["GMAIL_TOKEN_PATH"] = "/tmp/test_gmail_token.json"
os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
os.environ["SHEETS_CREDENTIALS_PATH"] = "/tmp/test_sheets_creds.json"
os.environ["SHEETS_SPREADSHEET_ID"] = "test-spreadsheet-id"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ.pop("NOTIFY_EMAIL", None)
os.environ.pop("POLLER_ENABLED", None)


@pytest.fixture
def settings():
    """Fresh settings built from the test environment."""
    from src.config.settings import load_settings

    return load_settings()


@pytest.fixture
def sample_extraction():
    """A complete extraction result as returned by the endpoint."""
    return {
        "property": {
            "street": "123 Main St",
            "city": "Atlanta",
            "state": "GA",
            "zip": "30301",
            "county": "Fulton",
        },
        "price_terms": {"offer_price": 450000, "earnest_money": 5000},
        "financing": {"type": "Conventional", "loan_amount": 360000, "down_payment": 90000},
        "dates": {
            "contract_date": "2024-01-05",
            "closing_date": "2024-02-15",
            "possession_date": "2024-02-15",
        },
        "settlement": {"title_company": "Peach State Title"},
        "home_warranty": {"included": True, "amount": 550, "paid_by": "Seller"},
        "property_details": {"year_built": 1998, "hoa": False},
        "contingencies": {"inspection": True, "appraisal": False, "financing": None},
        "parties": {
            "buyers": ["Jane Buyer", "John Buyer"],
            "sellers": [{"name": "Sam Seller"}],
            "buyer_agent": {
                "name": "Alex Agent",
                "email": "alex@realty.example.com",
                "phone": "404-555-0100",
            },
            "listing_agent": {"name": "Lee Lister"},
        },
        "special_stipulations": "Seller to repair roof prior to closing.",
        "contract_form_type": "GAR F201",
    }


class FakeWorksheet:
    """In-memory stand-in for a gspread Worksheet."""

    def __init__(self, values=None):
        self.values = [list(row) for row in (values or [])]
        self.append_calls = []

    def row_values(self, row):
        if len(self.values) >= row:
            return list(self.values[row - 1])
        return []

    def append_row(self, values, value_input_option="RAW"):
        self.append_calls.append((list(values), value_input_option))
        self.values.append([("" if v is None else str(v)) for v in values])

    def get_all_values(self):
        return [list(row) for row in self.values]


@pytest.fixture
def fake_worksheet():
    """Empty in-memory worksheet."""
    return FakeWorksheet()


@pytest.fixture
def make_worksheet():
    """Factory for pre-populated in-memory worksheets."""
    return FakeWorksheet


@pytest.fixture(autouse=True)
def isolated_env_file(tmp_path, monkeypatch):
    """Run each test from an empty directory so a developer's .env never leaks in."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
