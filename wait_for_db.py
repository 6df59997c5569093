"""Block until the Postgres behind DATABASE_URL accepts connections.

Imported for its side effect by start_api.py. Non-Postgres URLs (sqlite in
local runs) return immediately.
"""
import logging
import os
import time
from urllib.parse import urlparse

import psycopg2

logger = logging.getLogger("wait_for_db")
logging.basicConfig(level=logging.INFO, format="[wait_for_db] %(message)s")

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise SystemExit("DATABASE_URL is not set")

if DATABASE_URL.startswith(("postgres://", "postgresql")):
    p = urlparse(DATABASE_URL.replace("+psycopg2", ""))
    params = {
        "host": p.hostname or "db",
        "port": p.port or 5432,
        "user": p.username or "guidetrip",
        "password": p.password or "guidetrip",
        "dbname": (p.path or "").lstrip("/") or "guidetrip",
    }
    timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))
    deadline = time.time() + timeout_s

    logger.info("waiting for %s:%s db=%s (timeout=%ss)", params["host"], params["port"], params["dbname"], timeout_s)
    while True:
        try:
            psycopg2.connect(**params).close()
            logger.info("Postgres is ready")
            break
        except psycopg2.OperationalError as e:
            if time.time() > deadline:
                logger.error("timed out waiting for Postgres: %s", e)
                raise
            time.sleep(1)
