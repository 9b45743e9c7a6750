import os
import dotenv
import logging

dotenv.load_dotenv()

GITHUB_CLIENT_ID = os.environ.get("MERGEGUARD_CLIENT_ID", "")
GITHUB_PRIVATE_KEY = os.environ.get("MERGEGUARD_PRIVATE_KEY", "")
GITHUB_API_URL = os.environ.get("MERGEGUARD_API_URL", "https://api.github.com")

WEBHOOK_SECRET = os.environ.get("MERGEGUARD_WEBHOOK_SECRET") or None

PORT = int(os.environ.get("MERGEGUARD_PORT", 8080))

# seconds between queue drains, 0 updates check runs immediately
PERIODIC_REFRESH = float(os.environ.get("MERGEGUARD_PERIODIC_REFRESH", 0))

SSL_ENABLED = os.environ.get("MERGEGUARD_SSL_ENABLED", "false") == "true"
SSL_CERT = os.environ.get("MERGEGUARD_SSL_CERT", "")
SSL_KEY = os.environ.get("MERGEGUARD_SSL_KEY", "")

OVERRIDE_LOGGING = logging.getLevelName(os.environ.get("OVERRIDE_LOGGING", "INFO"))

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")

HTTP_CACHE_SIZE = int(os.environ.get("HTTP_CACHE_SIZE", 500))
