"""Design documents stored under design-docs/issue-{N}/ in the repository."""

import logging
from pathlib import Path
from typing import Optional

from ..utils.atomic_io import atomic_write_text

logger = logging.getLogger(__name__)

DESIGN_DOCS_DIR = "design-docs"

DESIGN_DOC_FILENAMES = {
    "product-dev": "product-development.md",
    "product": "product-design.md",
    "tech": "tech-design.md",
}


def get_design_doc_relative_path(issue_number: int, doc_type: str) -> str:
    """e.g. "design-docs/issue-42/tech-design.md"."""
    if doc_type not in DESIGN_DOC_FILENAMES:
        raise ValueError(f"Unknown design doc type: {doc_type}")
    return f"{DESIGN_DOCS_DIR}/issue-{issue_number}/{DESIGN_DOC_FILENAMES[doc_type]}"


def write_design_doc(workspace: Path, issue_number: int, doc_type: str, content: str) -> Path:
    path = Path(workspace) / get_design_doc_relative_path(issue_number, doc_type)
    atomic_write_text(path, content.rstrip() + "\n")
    logger.debug(f"Wrote {doc_type} design for #{issue_number} to {path}")
    return path


def read_design_doc(workspace: Path, issue_number: int, doc_type: str) -> Optional[str]:
    path = Path(workspace) / get_design_doc_relative_path(issue_number, doc_type)
    if not path.exists():
        return None
    return path.read_text(encoding="utf-8")
