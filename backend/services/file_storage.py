"""Uploaded files on local disk under ``UPLOAD_DIR/documents``.

Rows in ``documents`` go away through ``ON DELETE CASCADE`` when their
application, program, organization or company is deleted; the stored files
do not. Callers collect the paths before deleting and remove them after the
commit succeeds.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.config import settings
from models.application import Application
from models.document import Document
from models.program import Program


logger = logging.getLogger(__name__)


def storage_root() -> Path:
    root = Path(settings.upload_dir) / "documents"
    root.mkdir(parents=True, exist_ok=True)
    return root


def _paths(db: Session, stmt) -> list[Path]:
    return [Path(p) for p in db.execute(stmt).scalars().all() if p]


def paths_for_application(db: Session, application_id) -> list[Path]:
    return _paths(db, select(Document.path).where(Document.application_id == application_id))


def paths_for_program(db: Session, program_id) -> list[Path]:
    stmt = (
        select(Document.path)
        .join(Application, Application.id == Document.application_id)
        .where(Application.program_id == program_id)
    )
    return _paths(db, stmt)


def paths_for_organization(db: Session, organization_id) -> list[Path]:
    stmt = (
        select(Document.path)
        .join(Application, Application.id == Document.application_id)
        .join(Program, Program.id == Application.program_id)
        .where(Program.organization_id == organization_id)
    )
    return _paths(db, stmt)


def paths_for_company(db: Session, company_id) -> list[Path]:
    stmt = (
        select(Document.path)
        .join(Application, Application.id == Document.application_id)
        .where(Application.company_id == company_id)
    )
    return _paths(db, stmt)


def remove_files(paths: Iterable[Path]) -> int:
    removed = 0
    for path in paths:
        try:
            path.unlink(missing_ok=True)
            removed += 1
        except OSError:
            logger.warning("could not remove document file path=%s", path, exc_info=True)
    return removed
