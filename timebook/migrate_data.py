import argparse
import logging
from pathlib import Path

from timebook.db.sqlite_client import SQLiteClient
from timebook.sheets.client import WorkbookClient
from timebook.sheets.settings import SettingsTable
from timebook.tracking.entries import TimeEntryLog
from timebook.tracking.projects import ProjectRegistry
from timebook.tracking.timers import TimerRegistry


logger = logging.getLogger("db_migration")


def migrate_workbook_to_sqlite(workbook_path: Path | str, sqlite_client: SQLiteClient, batch_size: int = 100) -> dict:
    """
    Migrate a month workbook into the SQLite store.

    Args:
        workbook_path: Path to the month workbook
        sqlite_client: Destination store
        batch_size: Number of entries to insert per transaction

    Returns:
        Counts of migrated projects, entries and timers
    """
    logger.info(f"Starting migration from {workbook_path} to {sqlite_client.database_path}")

    client = WorkbookClient(workbook_path)
    client.open(expect_existing=True)
    settings = SettingsTable(client)
    settings.migrate_legacy_rates()
    projects = ProjectRegistry(client, settings)
    entry_log = TimeEntryLog(client, projects)

    try:
        # Projects first so entries keep their rates
        logger.info("Migrating projects")
        workbook_projects = projects.list_projects()
        added = sqlite_client.import_projects(workbook_projects)
        logger.info(f"Found {len(workbook_projects)} projects, {added} new")

        logger.info("Migrating entries")
        entries = [entry for project_entries in entry_log.entries_by_project().values() for entry in project_entries]
        logger.info(f"Found {len(entries)} entries to migrate")
        for i in range(0, len(entries), batch_size):
            batch = entries[i : i + batch_size]
            logger.info(
                f"Migrating entries batch {i // batch_size + 1}/{(len(entries) + batch_size - 1) // batch_size}"
            )
            sqlite_client.import_entries(batch)

        logger.info("Migrating timers")
        timers = TimerRegistry(client, projects).list_timers()
        sqlite_client.import_timers(timers)

        logger.info("Migration completed successfully")

    except Exception:
        logger.exception("Migration failed")
        raise

    return {"projects": added, "entries": len(entries), "timers": len(timers)}


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    parser = argparse.ArgumentParser(description="Copy a month workbook into the SQLite store")
    parser.add_argument("workbook", help="Path to time-tracking-YYYY-MM.xlsx")
    parser.add_argument("--data-dir", default="data", help="Directory of the SQLite database")
    args = parser.parse_args()

    migrate_workbook_to_sqlite(args.workbook, SQLiteClient(data_dir_path=args.data_dir))
