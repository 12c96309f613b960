"""Gunicorn configuration for the topology agent."""
import os
import sys

# Listener state lives in-process, a second worker would poll the cluster twice
bind = f"{os.getenv('TOPO_API_HOST', '0.0.0.0')}:{os.getenv('TOPO_API_PORT', '8080')}"
workers = 1
threads = 4
timeout = 120
worker_class = "gthread"
preload_app = False
wsgi_app = "app:build_app()"


def post_worker_init(worker):
    """Called just after a worker has initialized the application."""
    try:
        app = worker.wsgi
        listener = app.config.get('topo_listener') if hasattr(app, 'config') else None
        if listener is None:
            print(f"[Worker {worker.pid}] WARNING: No listener found in app.config", file=sys.stderr, flush=True)
        elif listener.mode is None:
            listener.watch()
            print(f"[Worker {worker.pid}] Cluster watch started", file=sys.stderr, flush=True)
        else:
            print(f"[Worker {worker.pid}] Listener already in {listener.mode} mode", file=sys.stderr, flush=True)
    except Exception as e:
        print(f"[Worker {worker.pid}] ERROR in post_worker_init: {e}", file=sys.stderr, flush=True)
        import traceback
        traceback.print_exc(file=sys.stderr)


def worker_exit(server, worker):
    """Stop polling when the worker goes away."""
    app = getattr(worker, 'wsgi', None)
    listener = app.config.get('topo_listener') if hasattr(app, 'config') else None
    if listener is not None:
        listener.close()
