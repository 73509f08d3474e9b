# worker.py
"""RQ worker for queued outbound mail: ``python worker.py``."""
import logging
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from rq import SimpleWorker  # noqa: E402

import checkin.jobs  # noqa: E402,F401  job functions are enqueued by dotted name
from checkin import config  # noqa: E402
from checkin.queue import get_connection, get_queue  # noqa: E402

log = logging.getLogger("checkin.worker")


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    conn = get_connection()
    try:
        conn.ping()
    except Exception as e:
        raise RuntimeError(f"[worker] Redis connection failed: {e}") from e

    # SimpleWorker runs jobs in-process (no fork)
    worker = SimpleWorker([get_queue()], connection=conn)
    log.info("[worker] listening on %r", config.QUEUE_NAME)
    worker.work(burst=False)


if __name__ == "__main__":
    main()
