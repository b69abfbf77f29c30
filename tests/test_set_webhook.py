import pytest

from app.scripts import set_webhook
from config import settings


def test_module_has_usage_docstring():
    assert set_webhook.__doc__.startswith("Register the webhook URL with Telegram.")
    assert "python -m app.scripts.set_webhook" in set_webhook.__doc__


@pytest.mark.asyncio
async def test_refuses_without_url(monkeypatch):
    monkeypatch.setattr(settings, "TELEGRAM_TOKEN", "123:abc")
    monkeypatch.setattr(settings, "TELEGRAM_WEBHOOK_URL", None)

    with pytest.raises(SystemExit):
        await set_webhook.main()
