import pytest
from pydantic import ValidationError

from services.common import ServiceSettings


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SERVICE_DEFAULT_ACTOR", "warehouse-bot")
    monkeypatch.setenv("SERVICE_SERIALIZE_STOCK_MUTATIONS", "true")
    monkeypatch.setenv("SERVICE_MAX_PAGE_SIZE", "25")

    settings = ServiceSettings()

    assert settings.default_actor == "warehouse-bot"
    assert settings.serialize_stock_mutations is True
    assert settings.max_page_size == 25


def test_default_page_size_cannot_exceed_maximum() -> None:
    with pytest.raises(ValidationError):
        ServiceSettings(default_page_size=50, max_page_size=20)
