from courtside.utils import sentry


def test_init_sentry_skips_without_dsn(monkeypatch):
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    called = []
    monkeypatch.setattr(sentry.sentry_sdk, "init", lambda **kwargs: called.append(kwargs))

    assert sentry.init_sentry() is False
    assert called == []


def test_init_sentry_clamps_sample_rate_and_tags_device(monkeypatch):
    calls = {}
    monkeypatch.setenv("SENTRY_DSN", "https://public@example.invalid/1")
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "5")
    monkeypatch.setenv("DEVICE_ID", "court-3")
    monkeypatch.setattr(sentry.sentry_sdk, "init", lambda **kwargs: calls.update(kwargs))
    monkeypatch.setattr(
        sentry.sentry_sdk, "set_tag", lambda key, value: calls.update({key: value})
    )

    assert sentry.init_sentry() is True
    assert calls["traces_sample_rate"] == 1.0
    assert calls["device_id"] == "court-3"


def test_invalid_sample_rate_disables_tracing(monkeypatch):
    monkeypatch.setenv("SENTRY_TRACES_SAMPLE_RATE", "often")
    assert sentry._sample_rate("SENTRY_TRACES_SAMPLE_RATE") == 0.0
