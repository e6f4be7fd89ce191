# auctionmaster/tasks/backup.py
"""Background task body that writes a periodic backup."""

import logging
from pathlib import Path

from auctionmaster.services.backup_service import JsonBackupService

logger = logging.getLogger(__name__)


async def run_backup(backups: JsonBackupService, directory: str | Path) -> Path:
    path = await backups.create_backup(directory)
    logger.info("Scheduled backup completed: %s", path.name)
    return path
