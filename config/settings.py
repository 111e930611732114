"""
Django settings for config project.
"""

from pathlib import Path
import os

import dj_database_url  # <- produção com Postgres (DATABASE_URL)
from dotenv import load_dotenv

# ===================== BASE =====================
BASE_DIR = Path(__file__).resolve().parent.parent

# .env em dev; em produção (Render) use env vars
load_dotenv(BASE_DIR / ".env")

# Segurança: em produção use SECRET_KEY via variável de ambiente
SECRET_KEY = os.getenv("SECRET_KEY", "django-insecure-l0tes-5ys-r3serv4s-d3v-only-k3y-troque-em-producao")
DEBUG = os.getenv("DEBUG", "True") == "True"

# Hosts permitidos
ALLOWED_HOSTS = ["127.0.0.1", "localhost", "testserver"]
# Render define esse hostname externamente
_render_host = os.getenv("RENDER_EXTERNAL_HOSTNAME")
if _render_host:
    ALLOWED_HOSTS.append(_render_host)

# CSRF confiável quando atrás do proxy do Render
RENDER_EXTERNAL_URL = os.getenv("RENDER_EXTERNAL_URL")
if RENDER_EXTERNAL_URL:
    CSRF_TRUSTED_ORIGINS = [RENDER_EXTERNAL_URL]
else:
    CSRF_TRUSTED_ORIGINS = []

# ===================== APPS =====================
INSTALLED_APPS = [
    # Tema do Admin (precisa vir ANTES do admin)
    "jazzmin",

    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Apps do projeto
    "usuarios",
    "cadastros",
    "vendas",
    "dashboard",
]

# ===================== MIDDLEWARE =====================
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",

    # WhiteNoise para servir estáticos em produção
    "whitenoise.middleware.WhiteNoiseMiddleware",

    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

# ===================== TEMPLATES =====================
# Só o admin renderiza HTML; a API responde JSON.
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

# ===================== DATABASE =====================
# Padrão local (SQLite)
# IMMEDIATE: cada transação pega a trava de escrita no BEGIN, então reservas
# concorrentes esperam a vez e a perdedora enxerga o lote já RESV (Conflito).
# Banco de teste em arquivo: threads não compartilham o banco em memória.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
        "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
        "TEST": {"NAME": BASE_DIR / "test_db.sqlite3"},
    }
}
# Produção (DATABASE_URL -> Postgres)
if os.getenv("DATABASE_URL"):
    DATABASES["default"] = dj_database_url.parse(
        os.environ["DATABASE_URL"],
        conn_max_age=600,
        ssl_require=os.getenv("DATABASE_SSL", "True") == "True",
    )

# ===================== PASSWORDS =====================
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# ===================== I18N / TZ =====================
LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Recife"
USE_I18N = True
USE_TZ = True

# ===================== STATIC =====================
STATIC_URL = "static/"
# Produção (collectstatic)
STATIC_ROOT = BASE_DIR / "staticfiles"

# WhiteNoise: gerar manifest comprimido em produção
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

# ===================== DEFAULTS =====================
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ===================== AUTH REDIRECTS =====================
# A API não tem tela de login própria; sessões vêm do admin.
LOGIN_URL = "admin:login"

# ===================== LOTESYS =====================
# Intervalo (s) em que os clientes re-consultam o estado. É também o
# atraso máximo que um cliente deve tolerar entre o servidor e a sua tela.
LOTESYS_POLLING_SEGUNDOS = int(os.getenv("POLLING_SEGUNDOS", "5"))
# Tamanho de página da listagem de reservas
LOTESYS_POR_PAGINA = int(os.getenv("RESERVAS_POR_PAGINA", "10"))

# ===================== LOGGING =====================
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "lotesys": {
            "format": "[{asctime}] {levelname} {name}: {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "lotesys",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "cadastros": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "vendas": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "dashboard": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "usuarios": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# ===================== JAZZMIN =====================
JAZZMIN_SETTINGS = {
    "site_title": "LoteSys Admin",
    "site_header": "LoteSys",
    "site_brand": "LoteSys",
    "welcome_sign": "Bem-vindo ao LoteSys",

    "site_logo": None,

    "show_ui_builder": False,

    # Ícones (Font Awesome)
    "icons": {
        "auth.User": "fas fa-user",
        "auth.Group": "fas fa-users-cog",
        "usuarios.Perfil": "fas fa-id-badge",
        "cadastros.Mapa": "fas fa-map",
        "cadastros.Quadra": "fas fa-border-all",
        "cadastros.Lote": "fas fa-th-large",
        "vendas.Reserva": "fas fa-shopping-cart",
    },

    # Ordem dos apps no menu lateral
    "order_with_respect_to": ["auth", "usuarios", "cadastros", "vendas"],

    "copyright": "LoteSys",
}

JAZZMIN_UI_TWEAKS = {
    "theme": "darkly",           # troque p/ "flatly" se quiser claro
    "navbar": "navbar-dark",
    "no_navbar_border": True,
    "sidebar_fixed": True,
    "layout_fixed": True,
    "show_sidebar": True,
}

# Reverso/SSL quando atrás de proxy (Render)
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
