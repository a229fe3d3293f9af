"""
Django settings for the ctnft project.

Values come from the environment (a local .env file is loaded first).
"""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def env_bool(name, default=False):
    return os.getenv(name, str(default)).lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-ctnft-development-key')
DEBUG = env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h.strip() for h in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h.strip()]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'rest_framework',
    'channels',
    'django_celery_beat',

    # Local apps
    'accounts',
    'events_ctf',
    'challenges',
    'submissions',
    'nft_rewards',
    'ctf_core',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'ctnft.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
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

WSGI_APPLICATION = 'ctnft.wsgi.application'
ASGI_APPLICATION = 'ctnft.asgi.application'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('DATABASE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

AUTH_USER_MODEL = 'accounts.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
MEDIA_URL = '/media/'
MEDIA_ROOT = BASE_DIR / 'media'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# REST framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
}

# Redis / cache / channels
REDIS_URL = os.getenv('REDIS_URL', '')

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.redis.RedisCache',
            'LOCATION': REDIS_URL,
        }
    }
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels_redis.core.RedisChannelLayer',
            'CONFIG': {'hosts': [REDIS_URL]},
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'ctnft',
        }
    }
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels.layers.InMemoryChannelLayer',
        }
    }

# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL') or REDIS_URL or 'redis://localhost:6379/0'
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND') or CELERY_BROKER_URL
CELERY_TASK_ALWAYS_EAGER = env_bool('CELERY_TASK_ALWAYS_EAGER', False)
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'
# All mint transactions share one signing key; run this queue with --concurrency=1
CELERY_TASK_ROUTES = {
    'nft_rewards.tasks.*': {'queue': 'nft-rewards'},
}
CELERY_BEAT_SCHEDULE = {
    'resume-stalled-nft-distributions': {
        'task': 'nft_rewards.tasks.resume_stalled_distributions',
        'schedule': 300.0,
    },
    'auto-end-expired-events': {
        'task': 'events_ctf.tasks.auto_end_expired_events',
        'schedule': 60.0,
    },
}

# Blockchain (Monad testnet by default)
WEB3_PROVIDER_URL = os.getenv('WEB3_PROVIDER_URL') or os.getenv('MONAD_URL', 'https://rpc.ankr.com/monad_testnet')
CHAIN_ID = int(os.getenv('CHAIN_ID', '10143'))
CTNFT_CONTRACT_ADDRESS = os.getenv('CTNFT_CONTRACT_ADDRESS', '')
PRIVATE_KEY = os.getenv('PRIVATE_KEY', '')
WEB3_REQUEST_TIMEOUT = int(os.getenv('WEB3_REQUEST_TIMEOUT', '30'))
WEB3_RECEIPT_TIMEOUT = int(os.getenv('WEB3_RECEIPT_TIMEOUT', '180'))
BLOCK_EXPLORER_URL = os.getenv('BLOCK_EXPLORER_URL', 'https://testnet.monadexplorer.com')

# NFT reward distribution
NFT_REWARD_BATCH_SIZE = int(os.getenv('NFT_REWARD_BATCH_SIZE', '10'))
NFT_REWARD_MAX_RETRIES = int(os.getenv('NFT_REWARD_MAX_RETRIES', '3'))
NFT_REWARD_RETRY_BACKOFF_SECONDS = float(os.getenv('NFT_REWARD_RETRY_BACKOFF_SECONDS', '2'))
NFT_REWARD_STALE_AFTER_SECONDS = int(os.getenv('NFT_REWARD_STALE_AFTER_SECONDS', '900'))
NFT_REWARDS_ASYNC = env_bool('NFT_REWARDS_ASYNC', True)

# Flag submissions per user per minute
SUBMISSION_RATE_LIMIT = int(os.getenv('SUBMISSION_RATE_LIMIT', '10'))

# Logging
LOG_LEVEL = os.getenv('DJANGO_LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'django': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'celery': {'handlers': ['console'], 'level': 'INFO', 'propagate': False},
        'nft_rewards': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'submissions': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'events_ctf': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'accounts': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
    },
}
