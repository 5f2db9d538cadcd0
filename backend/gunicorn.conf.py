# Bind & workers
bind = "0.0.0.0:8000"
workers = 2  # override via GUNICORN_WORKERS
threads = 1
timeout = 60
graceful_timeout = 30
keepalive = 5

# Logs to stdout/stderr (collected by Docker)
accesslog = "-"
errorlog = "-"
loglevel = "info"  # override via LOG_LEVEL

# Trust proxy headers; the app resolves the client IP with ProxyFix
forwarded_allow_ips = "*"
proxy_protocol = False

# App entrypoint: gunicorn -c gunicorn.conf.py "nexsplit:create_app()"
wsgi_app = "nexsplit:create_app()"
