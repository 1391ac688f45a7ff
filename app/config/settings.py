"""
Django settings for config project.
"""
import os
from pathlib import Path
from django.core.exceptions import ImproperlyConfigured

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# ==========================================
# 1. CORE SETTINGS
# ==========================================

INSECURE_SECRET_KEY = 'django-insecure-dev-key-change-in-prod'

# Lee la secret key del entorno, o usa una insegura solo si no existe (para dev)
SECRET_KEY = os.environ.get('SECRET_KEY', INSECURE_SECRET_KEY)

# DEBUG debe ser True solo si la variable es 'True'
DEBUG = os.environ.get('DEBUG', 'True') == 'True'

if not DEBUG and SECRET_KEY == INSECURE_SECRET_KEY:
    raise ImproperlyConfigured("Define SECRET_KEY en el entorno cuando DEBUG=False.")

# Hosts permitidos separados por coma
ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1,0.0.0.0').split(',')


# ==========================================
# 2. INSTALLED APPS
# ==========================================
INSTALLED_APPS = [
    "unfold",  # Admin moderno
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Local Apps (Módulos)
    "core",
    "users",
    "inventory",
    "leads",
    "sales",
    "finance",
    "dashboard",
]

# Modelo de Usuario Personalizado
AUTH_USER_MODEL = 'users.User'


# ==========================================
# 3. MIDDLEWARE
# ==========================================
MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    "whitenoise.middleware.WhiteNoiseMiddleware", # <--- Whitenoise va aquí
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'users.middleware.ApiAuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

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

WSGI_APPLICATION = 'config.wsgi.application'


# ==========================================
# 4. DATABASE (PostgreSQL / SQLite local)
# ==========================================
if os.environ.get('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('POSTGRES_DB'),
            'USER': os.environ.get('POSTGRES_USER', 'admin'),
            'PASSWORD': os.environ.get('POSTGRES_PASSWORD', 'admin'),
            'HOST': os.environ.get('DB_HOST', 'db'),
            'PORT': os.environ.get('DB_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }


# ==========================================
# 5. PASSWORD VALIDATION
# ==========================================
AUTH_PASSWORD_VALIDATORS = [
    { 'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator', },
    { 'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', },
    { 'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator', },
    { 'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator', },
]


# ==========================================
# 6. LOCALIZATION
# ==========================================
LANGUAGE_CODE = 'es-pe' # Español Perú
TIME_ZONE = 'America/Lima'
USE_I18N = True
USE_TZ = True


# ==========================================
# 7. STATIC FILES (Whitenoise)
# ==========================================

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    # Archivos Estáticos (CSS, JS) -> Whitenoise (Local rápido)
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

# ==========================================
# 8. UNFOLD ADMIN UI (Personalización)
# ==========================================
UNFOLD = {
    "SITE_TITLE": "Gestión Inmobiliaria",
    "SITE_HEADER": "Panel Administrativo",
    "SITE_URL": "/",
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ==========================================
# 9. LOGGING
# ==========================================
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.environ.get('DJANGO_LOG_LEVEL', 'WARNING').upper(),
            "propagate": False,
        },
    },
}

# ==========================================
# 10. REGLAS DE NEGOCIO
# ==========================================
QUOTATION_VALIDITY_DAYS = int(os.environ.get("QUOTATION_VALIDITY_DAYS", "30"))
LEAD_EXPIRATION_DAYS = int(os.environ.get("LEAD_EXPIRATION_DAYS", "7"))
RESERVATION_EXPIRATION_DAYS = int(os.environ.get("RESERVATION_EXPIRATION_DAYS", "7"))

# ==========================================
# 11. API LANDING (formulario público)
# ==========================================
LANDING_API_TOKEN = os.environ.get("LANDING_API_TOKEN", "")
