"""
Cleanup: delete downloaded audio and segments after a run.
"""

import shutil
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def cleanup_job_artifacts(job_workspace: Path, keep_debug: bool = False):
    """
    Delete a video's workspace after the run (success or failure).
    With keep_debug the workspace is left in place for inspection.
    """
    if not job_workspace.exists():
        return

    if keep_debug:
        logger.info("Keeping workspace for debugging: %s", job_workspace)
        return

    try:
        shutil.rmtree(job_workspace)
        logger.debug("Deleted workspace: %s", job_workspace)
    except OSError as e:
        logger.warning("Failed to delete %s: %s", job_workspace, e)
