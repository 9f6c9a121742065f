# Run with: gunicorn -c gunicorn.conf.py "authority:create_app()"
import os

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = int(os.getenv("GUNICORN_THREADS", "4"))
timeout = 60
graceful_timeout = 30
keepalive = 5

# Each worker builds its own app. Production requires REDIS_URL so refresh tokens are
# shared across workers. Rotation is off by default in production: enable
# KEY_ROTATION_ENABLED in one process only, or rotate from cron (`flask keys rotate`).
preload_app = False

# Logs to stdout/stderr (collected by the container runtime)
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Trust proxy headers
forwarded_allow_ips = "*"
proxy_protocol = False
