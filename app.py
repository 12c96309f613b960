from __future__ import annotations

import logging
from typing import Optional

from topo.api import create_app
from topo.channel import Channel, EventLog, HttpChannel
from topo.config import AgentConfig, load_config
from topo.listener import ClusterListener
from topo.rest import RestExecutor

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(cfg: AgentConfig) -> None:
	logging.basicConfig(level=cfg.log_level.upper(), format=LOG_FORMAT)
	# Connection pool chatter drowns out the poll log at DEBUG
	logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_listener(cfg: AgentConfig, channel: Channel) -> ClusterListener:
	rest = RestExecutor(
		cfg.node_uri,
		timeout_s=cfg.request_timeout_s,
		login=cfg.node_login,
		password=cfg.node_password,
	)
	return ClusterListener(
		rest,
		channel,
		interval_ms=cfg.poll_interval_ms,
		warn_throttle_s=cfg.warn_throttle_s,
	)


def build_app(cfg: Optional[AgentConfig] = None):
	"""Build the Flask app with a cluster listener wired to the configured channel."""
	cfg = cfg or load_config()
	configure_logging(cfg)

	events: Optional[EventLog] = None
	if cfg.server_uri:
		channel: Channel = HttpChannel(cfg.server_uri, token=cfg.server_token, timeout_s=cfg.request_timeout_s)
		logger.info(f"Relaying cluster events to {cfg.server_uri}")
	else:
		events = EventLog(maxlen=cfg.event_buffer)
		channel = events
		logger.info("No server URI configured, keeping cluster events in memory")

	listener = build_listener(cfg, channel)

	if cfg.auto_start:
		listener.watch()

	return create_app(listener, events=events, config=cfg)


if __name__ == "__main__":
	app = build_app()
	cfg = app.config['topo_config']
	app.run(host=cfg.api_host, port=cfg.api_port)
