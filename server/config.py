"""Configuration for the API server."""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Environment-backed settings."""
    google_client_id: str = os.getenv('GOOGLE_OAUTH_CLIENT_ID', '')
    google_client_secret: str = os.getenv('GOOGLE_OAUTH_CLIENT_SECRET', '')
    google_redirect_uri: str = os.getenv('GOOGLE_OAUTH_REDIRECT_URI', '')
    allowed_google_domain: str = os.getenv('ALLOWED_GOOGLE_DOMAIN', '')
    session_secret: str = os.getenv('SESSION_SECRET', 'change-me')
    redis_url: str = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    queue_name: str = os.getenv('CAPTURE_QUEUE', 'captures')
    runs_dir: str = os.getenv('RUNS_DIR', 'runs')
    job_timeout_s: int = int(os.getenv('CAPTURE_JOB_TIMEOUT', str(60 * 60)))
    host: str = os.getenv('API_HOST', '127.0.0.1')
    port: int = int(os.getenv('API_PORT', '8080'))


settings = Settings()
