from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from topo.channel import EventLog
from topo.config import AgentConfig
from topo.listener import ClusterListener


def create_app(
	listener: ClusterListener,
	events: Optional[EventLog] = None,
	config: Optional[AgentConfig] = None,
) -> Flask:
	app = Flask(__name__)
	# Keep collaborators in app config so gunicorn hooks can reach them
	app.config['topo_listener'] = listener
	app.config['topo_events'] = events
	app.config['topo_config'] = config

	@app.post("/broadcast/start")
	def start_broadcast() -> Any:
		body: Dict[str, Any] = request.get_json(silent=True) or {}
		interval_ms = body.get("interval_ms")
		if interval_ms is not None and (isinstance(interval_ms, bool) or not isinstance(interval_ms, (int, float))):
			return jsonify({"error": "'interval_ms' must be a number"}), 400
		listener.start_broadcast(interval_ms)
		return jsonify({"status": "ok", "mode": listener.mode})

	@app.post("/broadcast/stop")
	def stop_broadcast() -> Any:
		listener.stop_broadcast()
		return jsonify({"status": "ok", "mode": listener.mode})

	@app.post("/announce")
	def announce() -> Any:
		if not listener.announce():
			return jsonify({"error": "disconnected"}), 409
		return jsonify({"status": "ok"})

	@app.get("/topology")
	def topology() -> Any:
		top = listener.snapshot
		if top is None:
			return jsonify({"error": "disconnected"}), 404
		return jsonify(top.to_dict())

	@app.get("/events")
	def recent_events() -> Any:
		if events is None:
			return jsonify({"error": "events are relayed to a remote server"}), 404
		try:
			limit = int(request.args.get("limit", 100))
			since = request.args.get("since")
			since_id = int(since) if since is not None else None
		except ValueError:
			return jsonify({"error": "'limit' and 'since' must be integers"}), 400

		items = []
		for record in events.recent(limit=limit, since_id=since_id):
			item = dict(record)
			# Payloads are JSON text on the channel, hand them out decoded
			if item["payload"] is not None:
				item["payload"] = json.loads(item["payload"])
			items.append(item)
		return jsonify({"events": items})

	@app.get("/health")
	def health() -> Any:
		return jsonify({
			"status": "ok",
			"mode": listener.mode,
			"connected": listener.connected,
		})

	return app
