"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""

    # Remote book store
    API_BASE_URL = os.getenv("API_BASE_URL", "https://book-repo-api.azurewebsites.net")
    BOOKS_PATH = os.getenv("BOOKS_PATH", "/books")

    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "3"))
    DEFAULT_BACKOFF = float(os.getenv("DEFAULT_BACKOFF", "1.0"))
    MAX_CONCURRENT = int(os.getenv("MAX_CONCURRENT", "5"))

    # View
    PAGE_SIZE = int(os.getenv("PAGE_SIZE", "5"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
