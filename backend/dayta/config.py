"""Application-wide configuration loader.

Every setting is read from the environment once, at import time, and exposed
through the module-level ``settings`` singleton that other modules import.
"""

import os


class Settings:
    """Settings helper that gracefully falls back to sane defaults.

    Rationale
    ---------
    When docker-compose injects an environment variable whose value is empty
    (e.g. `DATABASE_URL=""`) ``os.getenv("DATABASE_URL", default)`` returns an
    empty string *not* ``None``.  That empty string then overrides the useful
    in-code default and downstream libraries (SQLAlchemy, Celery, httpx) fail
    with confusing parsing errors.  Every setting therefore uses the idiom

        os.getenv(KEY) or DEFAULT

    so that *falsy* values ("", None) are replaced by the specified DEFAULT.
    """

    DATABASE_URL: str = os.getenv('DATABASE_URL') or 'postgresql://dayta:dayta@db:5432/dayta'
    DB_ECHO: bool = (os.getenv('DB_ECHO') or '0').lower() in ('1', 'true', 'yes')
    CELERY_BROKER_URL: str = os.getenv('CELERY_BROKER_URL') or 'redis://broker:6379/0'
    CELERY_RESULT_BACKEND: str = os.getenv('CELERY_RESULT_BACKEND') or 'redis://broker:6379/0'

    # External worker queue (fal.ai queue REST API)
    FAL_KEY: str = os.getenv('FAL_KEY') or ''
    FAL_QUEUE_URL: str = (os.getenv('FAL_QUEUE_URL') or 'https://queue.fal.run').rstrip('/')
    FAL_PDF_APP: str = os.getenv('FAL_PDF_APP') or 'fal-ai/pdf-generator'
    FAL_ANALYSIS_APP: str = os.getenv('FAL_ANALYSIS_APP') or 'fal-ai/data-analyzer'
    FAL_TIMEOUT_SECONDS: float = float(os.getenv('FAL_TIMEOUT_SECONDS') or '30')

    # Rows beyond this limit are not sent to the analysis worker
    ANALYSIS_MAX_ROWS: int = int(os.getenv('ANALYSIS_MAX_ROWS') or '10000')

    # Used to build absolute links to locally rendered reports
    PUBLIC_BASE_URL: str = (os.getenv('PUBLIC_BASE_URL') or 'http://localhost:8000').rstrip('/')


settings = Settings()
