"""
Gunicorn configuration for the class metrics API.

Env vars that override defaults:
  PORT       - TCP port to bind (default: 8000)
  WORKERS    - number of worker processes (default: 2)
  LOG_LEVEL  - gunicorn log level (default: info)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# Metric recomputation is CPU-light and DB-bound; 2 workers fit a 512 MB container.
workers = int(os.environ.get("WORKERS", "2"))

worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# calculate-all runs 7 windows per course in one request.
timeout = 120

loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
