from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class TransportationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.transportation'
    verbose_name = _('Transportation')
