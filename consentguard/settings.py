from pathlib import Path
import os
from dotenv import load_dotenv
import dj_database_url

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")  # load once

ENV = os.getenv("DJANGO_ENV", "development").lower()  # "development" | "production" | "staging"
DEBUG_ENV = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")

# Force DEBUG off if ENV=production (even if someone sets DEBUG=true by accident)
DEBUG = False if ENV == "production" else DEBUG_ENV

DJANGO_ENV = ENV

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY")

if not SECRET_KEY:
	if ENV == "production":
		raise ValueError("DJANGO_SECRET_KEY must be set in production")
	SECRET_KEY = "consentguard-insecure-development-key"

INSTALLED_APPS = [
	'django.contrib.admin',
	'django.contrib.auth',
	'django.contrib.contenttypes',
	'django.contrib.sessions',
	'django.contrib.messages',
	'django.contrib.staticfiles',
	'corsheaders',
	'rest_framework',
	'drf_spectacular',
	'domains',
	'registry',
	'consents',
]

MIDDLEWARE = [
	"corsheaders.middleware.CorsMiddleware",
	"django.middleware.security.SecurityMiddleware",
	"whitenoise.middleware.WhiteNoiseMiddleware",
	"django.contrib.sessions.middleware.SessionMiddleware",
	"django.middleware.common.CommonMiddleware",
	"django.middleware.csrf.CsrfViewMiddleware",
	"django.contrib.auth.middleware.AuthenticationMiddleware",
	"django.contrib.messages.middleware.MessageMiddleware",
	"django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# Allow all origins since banners are embedded on external domains
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = True

CORS_ALLOW_METHODS = [
	"GET",
	"POST",
	"OPTIONS",
]

CORS_ALLOW_HEADERS = [
	"content-type",
	"authorization",
]

ALLOWED_HOSTS = [
	"localhost",
	"127.0.0.1",
	"testserver",
] + [h.strip() for h in os.getenv("ALLOWED_HOSTS", "").split(",") if h.strip()]

REST_FRAMEWORK = {
	"DEFAULT_AUTHENTICATION_CLASSES": (),
	"DEFAULT_PERMISSION_CLASSES": (
		"rest_framework.permissions.AllowAny",
	),
	"DEFAULT_RENDERER_CLASSES": (
		"rest_framework.renderers.JSONRenderer",
	),
	"DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
	"UNAUTHENTICATED_USER": None,
}

SPECTACULAR_SETTINGS = {
	"TITLE": "ConsentGuard API",
	"DESCRIPTION": "Consent decisions, TC strings and consent record lifecycle",
	"VERSION": "1.0.0",
}

ROOT_URLCONF = 'consentguard.urls'

TEMPLATES = [
	{
		'BACKEND': 'django.template.backends.django.DjangoTemplates',
		'DIRS': [],
		'APP_DIRS': True,
		'OPTIONS': {
			'context_processors': [
				'django.template.context_processors.request',
				'django.contrib.auth.context_processors.auth',
				'django.contrib.messages.context_processors.messages',
			],
		},
	},
]

WSGI_APPLICATION = 'consentguard.wsgi.application'

# Database
if ENV == "production":
	DATABASES = {
		"default": dj_database_url.config(
			default=os.getenv("DATABASE_URL"),
			conn_max_age=600,
			ssl_require=True
		)
	}
else:
	DATABASES = {
		"default": {
			"ENGINE": "django.db.backends.sqlite3",
			"NAME": BASE_DIR / "db.sqlite3",
			# Writers take the lock at BEGIN and wait for it instead of failing mid-transaction
			"OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
		}
	}

# Internationalization
# https://docs.djangoproject.com/en/5.2/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "/static/"

STATIC_ROOT = BASE_DIR / "staticfiles"

STORAGES = {
	"default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
	"staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# Default primary key field type
# https://docs.djangoproject.com/en/5.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# --- Logging ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
	"version": 1,
	"disable_existing_loggers": False,
	"formatters": {
		"standard": {
			"format": "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
			"datefmt": "%Y-%m-%d %H:%M:%S",
		},
	},
	"handlers": {
		"console": {
			"class": "logging.StreamHandler",
			"formatter": "standard",
		},
	},
	"root": {
		"handlers": ["console"],
		"level": LOG_LEVEL,
	},
	"loggers": {
		# Audit trail of consent state changes
		"consents.audit": {
			"handlers": ["console"],
			"level": "INFO",
			"propagate": False,
		},
	},
}

# --- Celery ---
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'

# --- CMP / TCF ---
IAB_CMP_ID = int(os.getenv("IAB_CMP_ID", "28"))
CMP_VERSION = int(os.getenv("CMP_VERSION", "1"))
TCF_VERSION = int(os.getenv("TCF_VERSION", "2"))
TCF_POLICY_VERSION = int(os.getenv("TCF_POLICY_VERSION", "4"))
PUBLISHER_CC = os.getenv("PUBLISHER_CC", "ES").upper()
CONSENT_LANGUAGE = os.getenv("CONSENT_LANGUAGE", "EN").upper()
CONSENT_SCREEN = int(os.getenv("CONSENT_SCREEN", "1"))
IS_SERVICE_SPECIFIC = os.getenv("IS_SERVICE_SPECIFIC", "true").lower() != "false"

# Purposes that may only ever be processed under consent (TCF 2.2 policy)
CONSENT_ONLY_PURPOSES = [
	int(p) for p in os.getenv("CONSENT_ONLY_PURPOSES", "1,3,4,5,6").split(",") if p.strip()
]

# --- Global Vendor List ---
VENDOR_LIST_URLS = [
	url for url in [
		os.getenv("VENDOR_LIST_URL"),
		"https://vendor-list.consensu.org/v3/vendor-list.json",
		"https://vendor-list.consensu.org/v2/vendor-list.json",
	] if url
]
VENDOR_LIST_TTL = int(os.getenv("VENDOR_LIST_TTL", "604800"))  # one week, in seconds
VENDOR_LIST_FETCH_TIMEOUT = float(os.getenv("VENDOR_LIST_FETCH_TIMEOUT", "10"))

# --- Consent lifecycle ---
# "strict" encodes the user's real decisions. "certification" substitutes an
# all-granted decision set for third-party certification harnesses and must
# only ever be enabled on dedicated, audited deployments.
CONSENT_CONFORMANCE_MODE = os.getenv("CONSENT_CONFORMANCE_MODE", "strict").lower()
CONSENT_AUDIT_SINK = os.getenv("CONSENT_AUDIT_SINK", "consents.audit.CeleryAuditSink")
CONSENT_STORE_TIMEOUT_MS = int(os.getenv("CONSENT_STORE_TIMEOUT_MS", "0")) or None
