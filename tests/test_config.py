import pytest

from topo.config import AgentConfig, load_config


def test_defaults_without_file_or_env():
    cfg = load_config(env={})

    assert cfg == AgentConfig()
    assert cfg.poll_interval_ms == 3000
    assert cfg.server_uri is None


def test_yaml_file_then_env_overrides(tmp_path):
    path = tmp_path / "agent.yaml"
    path.write_text(
        "node_uri: http://ignite:8080\n"
        "poll_interval_ms: 5000\n"
        "auto_start: false\n"
        "server_uri: http://console:3000\n",
        encoding="utf-8",
    )

    cfg = load_config(env={
        "TOPO_CONFIG": str(path),
        "TOPO_POLL_INTERVAL_MS": "1500",
        "TOPO_REQUEST_TIMEOUT_S": "2.5",
        "TOPO_LOG_LEVEL": "debug",
    })

    assert cfg.node_uri == "http://ignite:8080"
    assert cfg.poll_interval_ms == 1500
    assert cfg.request_timeout_s == 2.5
    assert cfg.auto_start is False
    assert cfg.server_uri == "http://console:3000"
    assert cfg.log_level == "debug"


@pytest.mark.parametrize("env", [
    {"TOPO_POLL_INTERVAL_MS": "soon"},
    {"TOPO_POLL_INTERVAL_MS": "0"},
    {"TOPO_AUTO_START": "maybe"},
    {"TOPO_LOG_LEVEL": "LOUD"},
    {"TOPO_CONFIG": "/nonexistent/agent.yaml"},
])
def test_invalid_values_are_rejected(env):
    with pytest.raises(ValueError):
        load_config(env=env)


def test_unknown_keys_are_rejected(tmp_path):
    path = tmp_path / "agent.yaml"
    path.write_text("node_url: http://typo:8080\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(str(path), env={})
