from django.apps import AppConfig


class CtfCoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'ctf_core'
    verbose_name = 'CTF - Core'
