from testbridge.modules.core.config import DEFAULT_POLL_INTERVAL, Settings, load_settings


def test_defaults():
    assert load_settings({}) == Settings()


def test_reads_environment():
    settings = load_settings(
        {
            "TESTBRIDGE_DAEMON_SOCKET": "/run/tb.sock",
            "TESTBRIDGE_LOG": "DEBUG",
            "TESTBRIDGE_POLL_INTERVAL": "0.5",
        }
    )
    assert settings.daemon_socket == "/run/tb.sock"
    assert settings.log_level == "debug"
    assert settings.poll_interval == 0.5


def test_invalid_poll_interval_falls_back():
    assert load_settings({"TESTBRIDGE_POLL_INTERVAL": "soon"}).poll_interval == DEFAULT_POLL_INTERVAL
    assert load_settings({"TESTBRIDGE_POLL_INTERVAL": "-1"}).poll_interval == DEFAULT_POLL_INTERVAL


def test_empty_socket_override_is_ignored():
    assert load_settings({"TESTBRIDGE_DAEMON_SOCKET": ""}).daemon_socket is None
