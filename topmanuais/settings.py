"""
Configurações para o projeto TopManuais.
"""

import os
import sys
from decouple import config, Csv
from pathlib import Path

# Garante que o diretório raiz do projeto esteja no path para imports relativos
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# ====================================================================
# CONFIGURAÇÕES BÁSICAS
# ====================================================================

# A SECRET_KEY deve ser lida de uma variável de ambiente por segurança.
SECRET_KEY = config('SECRET_KEY', default='django-insecure-default-key-for-development')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())


# ====================================================================
# APLICAÇÕES INSTALADAS
# ====================================================================

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Aplicações de Terceiros (Primeiro)
    'rest_framework',
    'drf_spectacular',
    'rest_framework_simplejwt',

    # Nossas Aplicações
    'topmanuais.core.apps.CoreConfig', # Carrinho, Checkout e Pedidos (lógica pura)
    'topmanuais.infrastructure.apps.InfrastructureConfig', # Repositórios e Gateways
    'topmanuais.presentation.apps.PresentationConfig', # API, Admin e Templates
    'topmanuais.catalog.apps.CatalogConfig', # Catálogo de Manuais
    'topmanuais.vendas.apps.VendasConfig', # Pedidos e Links de Download
]


# ====================================================================
# MIDDLEWARE E TEMPLATES
# ====================================================================

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'topmanuais.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'topmanuais' / 'presentation' / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'topmanuais.wsgi.application'
ASGI_APPLICATION = 'topmanuais.asgi.application'


# ====================================================================
# CONFIGURAÇÃO DO BANCO DE DADOS
# ====================================================================

if config('DB_ENGINE', default='sqlite') == 'postgres':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': config('DB_NAME', default='topmanuais'),
            'USER': config('DB_USER', default='topmanuais'),
            'PASSWORD': config('DB_PASSWORD', default=''),
            'HOST': config('DB_HOST', default='localhost'),
            'PORT': config('DB_PORT', default=5432, cast=int),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }


# ====================================================================
# AUTENTICAÇÃO E VALIDAÇÃO DE SENHA
# ====================================================================

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]


# ====================================================================
# INTERNACIONALIZAÇÃO
# ====================================================================

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = 'America/Sao_Paulo'

USE_I18N = True

USE_TZ = True


# ====================================================================
# ARQUIVOS ESTÁTICOS (CSS, JavaScript, Imagens)
# ====================================================================

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ====================================================================
# CONFIGURAÇÕES DO DJANGO REST FRAMEWORK (DRF) E DOCS (SPECTACULAR)
# ====================================================================

SPECTACULAR_SETTINGS = {
    'TITLE': 'API do TopManuais',
    'DESCRIPTION': 'Carrinho, checkout, pedidos e links de download da loja TopManuais.',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

REST_FRAMEWORK = {
    # JWT é a autenticação primária para a API administrativa, SessionAuth para o Admin.
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}


# ====================================================================
# CHECKOUT, PAGAMENTO E DOWNLOADS
# ====================================================================

# 'simulado' para desenvolvimento ou 'mercadopago'
PAGAMENTO_GATEWAY = config('PAGAMENTO_GATEWAY', default='simulado')
PAGAMENTO_SIMULADO_APROVAR = config('PAGAMENTO_SIMULADO_APROVAR', default=True, cast=bool)
PAGAMENTO_SIMULADO_LATENCIA = config('PAGAMENTO_SIMULADO_LATENCIA', default=0.0, cast=float)
PAGAMENTO_TIMEOUT_SEGUNDOS = config('PAGAMENTO_TIMEOUT_SEGUNDOS', default=30.0, cast=float)
NOTIFICACAO_TIMEOUT_SEGUNDOS = config('NOTIFICACAO_TIMEOUT_SEGUNDOS', default=10.0, cast=float)
MERCADO_PAGO_ACCESS_TOKEN = config('MERCADO_PAGO_ACCESS_TOKEN', default='')

DOWNLOAD_VALIDADE_DIAS = config('DOWNLOAD_VALIDADE_DIAS', default=30, cast=int)
DOWNLOAD_LIMITE = config('DOWNLOAD_LIMITE', default=5, cast=int)
DOWNLOAD_BASE_URL = config('DOWNLOAD_BASE_URL', default='https://topmanuais.com/download')
PEDIDO_PREFIXO = config('PEDIDO_PREFIXO', default='TM')
SUPORTE_URL = config('SUPORTE_URL', default='https://topmanuais.com/contato')

# Carrinhos e checkouts sem acesso por este tempo são descartados da memória
SESSAO_COMPRA_TTL_SEGUNDOS = config('SESSAO_COMPRA_TTL_SEGUNDOS', default=86400, cast=int)


# ====================================================================
# CONFIGURAÇÕES DE SERVIÇOS EXTERNOS (E-mail e Logging)
# ====================================================================

# Configurações de E-mail
EMAIL_BACKEND = config('EMAIL_BACKEND', default='django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = config('EMAIL_HOST', default='localhost')
EMAIL_PORT = config('EMAIL_PORT', default=587, cast=int)
EMAIL_USE_TLS = config('EMAIL_USE_TLS', default=True, cast=bool)
EMAIL_HOST_USER = config('EMAIL_HOST_USER', default='')
EMAIL_HOST_PASSWORD = config('EMAIL_HOST_PASSWORD', default='')
DEFAULT_FROM_EMAIL = config('DEFAULT_FROM_EMAIL', default='noreply@topmanuais.com')


# Configurações de Logging
LOG_LEVEL = config('LOG_LEVEL', default='INFO')
LOG_FILE = config('LOG_FILE', default='')

_LOG_HANDLERS = ['console']

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'loggers': {
        'django': {
            'handlers': _LOG_HANDLERS,
            'level': 'WARNING',
            'propagate': True,
        },
        'topmanuais': {
            'handlers': _LOG_HANDLERS,
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# O arquivo de log só é usado quando LOG_FILE estiver definido
if LOG_FILE:
    LOGGING['handlers']['file'] = {
        'level': LOG_LEVEL,
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': LOG_FILE,
        'maxBytes': 1024 * 1024 * 5,  # 5 MB
        'backupCount': 5,
        'formatter': 'verbose',
    }
    _LOG_HANDLERS.append('file')
