from .core.config import MigratorConfig
from .core.errors import MigrationError
from .core.models import MigrationJob, ProductRecord, ProgressEvent, Stage
from .main import MigrationEngine, run_migration

__version__ = "0.1.0"

__all__ = [
    'MigrationEngine',
    'run_migration',
    'MigratorConfig',
    'MigrationError',
    'MigrationJob',
    'ProductRecord',
    'ProgressEvent',
    'Stage',
]
