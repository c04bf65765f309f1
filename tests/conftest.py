import pytest


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    """Keep a stray .env file from leaking into config tests."""
    monkeypatch.setattr('tws.config.load_dotenv', lambda *a, **kw: False)
