from __future__ import annotations

import os
import tempfile

# Point every external dependency at something local before ``dayta`` is
# imported: settings are read once, at import time.
_TMP_ROOT = tempfile.mkdtemp(prefix="dayta-tests-")

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("DB_ECHO", "0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("FAL_KEY", "test-key")
os.environ.setdefault("FAL_QUEUE_URL", "https://queue.test")
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")
os.environ.setdefault("DATA_ROOT", os.path.join(_TMP_ROOT, "data"))
os.environ.setdefault("LOG_DIR", os.path.join(_TMP_ROOT, "logs"))
