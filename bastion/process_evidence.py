"""
CLI entrypoint for the evidence pipeline job. Run after an evidence upload, e.g.:

  python -m bastion.process_evidence --tenant acme --evidence 3f1c...e9

Exit code 0 on success, 1 on failure.
"""

import argparse
import logging
import sys
import uuid

from bastion.core.config import get_settings
from bastion.core.database import session_scope
from bastion.core.logging import configure_logging
from bastion.services.pipeline import process_evidence

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m bastion.process_evidence",
        description="Evaluate policies, generate POA&M items and raise incidents for one evidence upload.",
    )
    parser.add_argument("--tenant", required=True, help="Tenant that owns the evidence.")
    parser.add_argument("--evidence", required=True, type=uuid.UUID, help="Evidence id (UUID).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the pipeline for one evidence snapshot."""
    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings)
    try:
        with session_scope() as db:
            summary = process_evidence(db, args.tenant, args.evidence, settings)
    except Exception as e:
        logger.exception("Pipeline job failed: %s", e)
        return 1
    logger.info("Pipeline completed: %s", summary.model_dump_json())
    return 0


if __name__ == "__main__":
    sys.exit(main())
