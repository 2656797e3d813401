import json
import threading
from datetime import datetime
from datetime import timezone
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger('raw_log')


class RawResponseLog:
    """
    Append-only JSONL log of every API response of a run.

    Each line is `{"metadata": {queryType, timestamp, owner, repo, inputs},
    "response": ...}`. Safe to share between fetch worker threads.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(
        self,
        query_name: str,
        owner: str,
        repo: str,
        response: Any,
        inputs: dict[str, Any] | None = None,
    ) -> None:
        entry = {
            'metadata': {
                'queryType': query_name,
                'timestamp': datetime.now(timezone.utc).isoformat(),
                'owner': owner,
                'repo': repo,
                'inputs': inputs or {'owner': owner, 'name': repo},
            },
            'response': response,
        }
        line = json.dumps(entry, ensure_ascii=False, default=str) + '\n'
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(line)
