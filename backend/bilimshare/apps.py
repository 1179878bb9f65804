from django.apps import AppConfig
from django.core.management import call_command
from django.db.models.signals import post_migrate


def create_cache_table(sender, using='default', **kwargs):
    """Create the table of a database cache backend; a no-op for other backends."""
    call_command('createcachetable', database=using, verbosity=0)


class BilimShareConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'bilimshare'
    verbose_name = 'BilimShare'

    def ready(self):
        post_migrate.connect(create_cache_table, sender=self)
