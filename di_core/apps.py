from django.apps import AppConfig
from django.conf import settings


class DICoreConfig(AppConfig):
    name = "di_core"

    def ready(self) -> None:
        from di_core import containers

        container = containers.AppContainer()
        # providers read plain uppercase settings, e.g. BUSY_TIMES_CACHE_TTL_SECONDS
        container.config.from_dict(
            {name: getattr(settings, name) for name in dir(settings) if name.isupper()}
        )
        container.wire(packages=settings.INTERNAL_INSTALLED_APPS)

        containers.container = container
