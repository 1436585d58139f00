import logging

import pytest

import main
from conftest import FakeResponse, FakeSession
from notifier import SlackNotifier
from services import AbstractHolidaysClient
from utils import AllFetchesFailedError


@pytest.fixture
def fake_http(monkeypatch, no_sleep):
    """Routes the clients built inside main.run() through one FakeSession."""
    session = FakeSession()

    def client_factory(api_key):
        return AbstractHolidaysClient(api_key, session=session, base_url="https://api.test/v1/")

    def notifier_factory(webhook_url):
        return SlackNotifier(webhook_url, session=session)

    monkeypatch.setattr(main, "AbstractHolidaysClient", client_factory)
    monkeypatch.setattr(main, "SlackNotifier", notifier_factory)
    return session


def test_partial_success_posts_only_successful_country(fake_http, env, us_payload):
    fake_http.responses = {"US": FakeResponse(200, us_payload), "UK": FakeResponse(500, text="down")}

    code = main.main(["US,UK", "--date", "2026-07-04"], environ=env)

    assert code == 0
    assert len(fake_http.post_calls) == 1
    text = fake_http.post_calls[0]["json"]["text"]
    assert "🎉 US: Independence Day" in text
    assert "UK" not in text
    assert fake_http.post_calls[0]["url"] == env["SLACK_WEBHOOK_URL"]


def test_all_failed_exits_nonzero_without_posting(fake_http, env, timeout_error):
    fake_http.responses = {"US": FakeResponse(401, text="bad key"), "UK": timeout_error}

    code = main.main(["US,UK", "--date", "2026-07-04"], environ=env)

    assert code == 1
    assert fake_http.post_calls == []


def test_no_holidays_still_posts(fake_http, env):
    fake_http.responses = {"US": FakeResponse(200, [])}

    assert main.main(["US", "--date", "2026-07-05"], environ=env) == 0

    text = fake_http.post_calls[0]["json"]["text"]
    assert "No holidays" in text


def test_notify_failure_exits_nonzero(fake_http, env, us_payload):
    fake_http.responses = {"US": FakeResponse(200, us_payload)}
    fake_http.post_response = FakeResponse(404, text="no_service")

    assert main.main(["US", "--date", "2026-07-04"], environ=env) == 1
    assert len(fake_http.post_calls) == 1


def test_dry_run_prints_and_skips_webhook(fake_http, env, us_payload, capsys):
    fake_http.responses = {"US": FakeResponse(200, us_payload)}

    assert main.main(["US", "--date", "2026-07-04", "--dry-run"], environ=env) == 0

    assert fake_http.post_calls == []
    assert "🎉 US: Independence Day" in capsys.readouterr().out


def test_query_uses_resolved_date(fake_http, env):
    fake_http.responses = {"DE": FakeResponse(200, [])}
    main.main(["de", "--date", "2026-10-03"], environ=env)
    assert fake_http.get_calls[0]["params"]["country"] == "DE"
    assert (fake_http.get_calls[0]["params"]["year"], fake_http.get_calls[0]["params"]["month"],
            fake_http.get_calls[0]["params"]["day"]) == (2026, 10, 3)


@pytest.mark.parametrize("argv", [["US,,UK"], ["USA"], ["US", "--date", "2026/07/04"]])
def test_configuration_errors_exit_with_usage(fake_http, env, argv, capsys):
    assert main.main(argv, environ=env) == 2
    err = capsys.readouterr().err
    assert "usage:" in err
    assert fake_http.get_calls == []


def test_missing_env_exits_with_usage(fake_http, capsys):
    assert main.main(["US"], environ={"ABSTRACT_API_KEY": "k"}) == 2
    assert "SLACK_WEBHOOK_URL" in capsys.readouterr().err


def test_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main.main(["--help"], environ={})
    assert excinfo.value.code == 0
    assert "usage:" in capsys.readouterr().out


def test_missing_countries_argument_exits_nonzero():
    with pytest.raises(SystemExit) as excinfo:
        main.main([], environ={})
    assert excinfo.value.code != 0


def test_run_raises_before_notifying(env, timeout_error, no_sleep):
    session = FakeSession({"US": timeout_error})
    run_config = main.resolve_run_config("US", "2026-07-04", environ=env)
    notifier = SlackNotifier(env["SLACK_WEBHOOK_URL"], session=session)

    with pytest.raises(AllFetchesFailedError):
        main.run(run_config, client=AbstractHolidaysClient("k", session=session), notifier=notifier)
    assert session.post_calls == []
    assert session.closed


def test_log_level_option_applies_to_module_loggers(fake_http, env):
    import config

    fake_http.responses = {"US": FakeResponse(200, [])}
    try:
        assert main.main(["US", "--date", "2026-07-04", "--log-level", "debug"], environ=env) == 0
        assert config.get_logger("services").level == logging.DEBUG
        assert config.get_logger("HolidayService").level == logging.DEBUG
        assert main.logger.isEnabledFor(logging.DEBUG)
    finally:
        config.set_log_level(config.LOG_LEVEL)
