from pathlib import Path
from decouple import config
import dj_database_url
from dotenv import load_dotenv

# Load environment variables (for local dev)
load_dotenv()

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY SETTINGS
SECRET_KEY = config('SECRET_KEY', default='ipdcare-dev-secret-key')
DEBUG = config('DEBUG', default=False, cast=bool)
ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="localhost,127.0.0.1").split(",")

# APPLICATIONS
INSTALLED_APPS = [
    'ipd',
    'channels',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'whitenoise.runserver_nostatic',
    'django.contrib.staticfiles',
]

ASGI_APPLICATION = "ipdcare.asgi.application"

# In-memory channel layer is enough for a single front-desk process
CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels.layers.InMemoryChannelLayer"
    }
}

# MIDDLEWARE
MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

# URL and WSGI
ROOT_URLCONF = 'ipdcare.urls'
WSGI_APPLICATION = 'ipdcare.wsgi.application'

# TEMPLATES
TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
                'ipd.context_processors.hospital',
            ],
        },
    },
]

# DATABASE CONFIGURATION
DATABASES = {
    'default': dj_database_url.config(default=f'sqlite:///{BASE_DIR / "db.sqlite3"}')
}

# PASSWORD VALIDATION
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

# LOCALIZATION
# Admission date keys and UHIDs use the hospital's local calendar day
LANGUAGE_CODE = 'en-us'
TIME_ZONE = config('TIME_ZONE', default='Asia/Kolkata')
USE_I18N = True
USE_TZ = True

# STATIC FILES
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# LOGIN / LOGOUT REDIRECTS
LOGIN_URL = '/admin/login/'
LOGIN_REDIRECT_URL = '/ipd/'
LOGOUT_REDIRECT_URL = '/admin/login/'

# AUTO FIELD
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# LOGGING
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'ipd': {
            'handlers': ['console'],
            'level': config('IPD_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}

# HOSPITAL / IPD
HOSPITAL_NAME = config('HOSPITAL_NAME', default='Gautami Medford Hospital')
UHID_PREFIX = config('UHID_PREFIX', default='GMH')
UHID_COUNTER_KEY = "ipdcounter/lastappoinment"
UHID_MAX_RETRIES = config('UHID_MAX_RETRIES', default=5, cast=int)
UHID_RETRY_BACKOFF = config('UHID_RETRY_BACKOFF', default=0.05, cast=float)

# WHATSAPP NOTIFICATIONS
WHATSAPP_ENABLED = config('WHATSAPP_ENABLED', default=False, cast=bool)
WHATSAPP_API_URL = config('WHATSAPP_API_URL', default='https://wa.medblisss.com/send-text')
WHATSAPP_TOKEN = config('WHATSAPP_TOKEN', default='')
WHATSAPP_COUNTRY_CODE = config('WHATSAPP_COUNTRY_CODE', default='91')
WHATSAPP_TIMEOUT = config('WHATSAPP_TIMEOUT', default=10, cast=float)
