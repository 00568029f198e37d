"""Django settings for the fleetdesk project."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get(
    "SECRET_KEY", "dev-secret-key-change-in-production"
)

DEBUG = os.environ.get("DEBUG", "True").lower() in ("true", "1", "yes")

ALLOWED_HOSTS = [
    h.strip()
    for h in os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")
]
for _h in ("localhost", "127.0.0.1"):
    if _h not in ALLOWED_HOSTS:
        ALLOWED_HOSTS.append(_h)

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "devices",
]

# Database configuration
DATABASE_URL = os.environ.get("DATABASE_URL", "")
if DATABASE_URL:
    import re

    match = re.match(
        r"postgres(?:ql)?://(?P<user>[^:]+):(?P<password>[^@]+)@"
        r"(?P<host>[^:]+):(?P<port>\d+)/(?P<name>.+)",
        DATABASE_URL,
    )
    if match:
        DATABASES = {
            "default": {
                "ENGINE": "django.db.backends.postgresql",
                "NAME": match.group("name"),
                "USER": match.group("user"),
                "PASSWORD": match.group("password"),
                "HOST": match.group("host"),
                "PORT": match.group("port"),
                # Row locks taken by the lifecycle services wait at most this
                # long before the statement fails.
                "OPTIONS": {
                    "options": "-c lock_timeout="
                    + os.environ.get("DB_LOCK_TIMEOUT_MS", "5000"),
                },
            }
        }
    else:
        DATABASES = {
            "default": {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": BASE_DIR / "db.sqlite3",
            }
        }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

LANGUAGE_CODE = "es-ar"
TIME_ZONE = os.environ.get("TIME_ZONE", "America/Argentina/Buenos_Aires")
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Demand/stock heuristics. These are placeholders until real
# stock counts are wired in; see devices.services.demand.
FLEET_DEMAND_WINDOW_DAYS = int(os.environ.get("FLEET_DEMAND_WINDOW_DAYS", "7"))
FLEET_DEMAND_DEFAULT_GROWTH = float(
    os.environ.get("FLEET_DEMAND_DEFAULT_GROWTH", "0.1")
)
FLEET_DEMAND_HIGH_CONFIDENCE = int(
    os.environ.get("FLEET_DEMAND_HIGH_CONFIDENCE", "50")
)
FLEET_DEMAND_LOW_CONFIDENCE = int(
    os.environ.get("FLEET_DEMAND_LOW_CONFIDENCE", "10")
)
FLEET_STOCK_TICKET_RATIO = float(
    os.environ.get("FLEET_STOCK_TICKET_RATIO", "0.3")
)
FLEET_STOCK_HARDWARE_RATIO = float(
    os.environ.get("FLEET_STOCK_HARDWARE_RATIO", "0.5")
)
FLEET_STOCK_SIMULATED_COVERAGE = float(
    os.environ.get("FLEET_STOCK_SIMULATED_COVERAGE", "0.7")
)

FLEET_LOG_LEVEL = os.environ.get("FLEET_LOG_LEVEL", "INFO").upper()

# Logging: lifecycle mutations are logged at INFO by the devices app
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "devices": {
            "level": FLEET_LOG_LEVEL,
        },
    },
}

# Startup validation
from django.core.exceptions import ImproperlyConfigured

_missing = []

# In production, SECRET_KEY must be explicitly set
if not DEBUG and SECRET_KEY == "dev-secret-key-change-in-production":
    _missing.append("SECRET_KEY")

# In production, DATABASE_URL must be set
if not DEBUG and not DATABASE_URL:
    _missing.append("DATABASE_URL")

if _missing:
    raise ImproperlyConfigured(
        f"Missing required environment variable(s): {', '.join(_missing)}. "
        f"See .env.example for all required variables."
    )

if not 0 < FLEET_STOCK_SIMULATED_COVERAGE <= 1:
    raise ImproperlyConfigured(
        "FLEET_STOCK_SIMULATED_COVERAGE must be in the range (0, 1]."
    )
