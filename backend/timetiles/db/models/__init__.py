# import all models for Alembic
from timetiles.db.models.user import User, UserUsage
from timetiles.db.models.catalog import Catalog
from timetiles.db.models.dataset import Dataset
from timetiles.db.models.scheduled_import import ScheduledImport
from timetiles.db.models.import_file import ImportFile
from timetiles.db.models.schema_version import SchemaVersion
from timetiles.db.models.import_job import ImportJob
from timetiles.db.models.import_row import ImportRow
from timetiles.db.models.event import Event
