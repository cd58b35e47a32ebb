from .db.sqlite_client import SQLiteClient
from .tracking.tracker import TimeTracker


# Both stores expose the same operations
TimeStore = TimeTracker | SQLiteClient

STORAGE_BACKENDS = ("workbook", "sqlite")


def create_store(storage: str, data_dir: str, auto_create_projects: bool = True) -> TimeStore:
    """Build the store selected by configuration"""
    if storage == "sqlite":
        return SQLiteClient(data_dir_path=data_dir, auto_create_projects=auto_create_projects)
    if storage == "workbook":
        tracker = TimeTracker(data_dir=data_dir, auto_create_projects=auto_create_projects)
        tracker.initialize()
        return tracker
    raise ValueError(f"Unsupported storage backend: {storage}")
