from django.apps import AppConfig


class DjliveConfig(AppConfig):
    name = "djlive"
    verbose_name = "djlive"

    def ready(self):
        # Re-read DJLIVE_CONFIG now that settings are loaded
        from djlive.config import config

        config.reset()

        from djlive.security import install_log_sanitizer

        install_log_sanitizer("djlive")
