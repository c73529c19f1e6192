"""Remove abandoned audio captures from the recording spool.

Usage:
  source .venv/bin/activate
  python scripts/sweep_spool.py          # e.g. hourly from cron

Applicants who close the tab or let their session lapse never reach a
logout or a completed assessment, so their spooled chunks stay on disk
until a sweep removes them once they are older than RECORDING_SPOOL_MAX_AGE.
"""

import sys
import os

# Ensure project root is on sys.path when running from scripts/ or other cwd
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from portal import create_app
from portal.assessment import sweep_spool


def main():
    app = create_app()
    with app.app_context():
        spool_root = app.config['RECORDING_SPOOL_DIR']
        removed = sweep_spool(spool_root, max_age=app.config['RECORDING_SPOOL_MAX_AGE'])
        app.logger.info('Spool sweep of %s removed %d session(s)', spool_root, removed)


if __name__ == '__main__':
    main()
