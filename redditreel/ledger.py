"""
Durable record of post ids that have already been turned into videos.

The ledger file holds one id per line and is only ever appended to. The
whole file is read into a lowercased set on construction.
"""

from pathlib import Path

from redditreel.runlog import RunLog


class UploadLedger:
    def __init__(self, path: Path | None, enabled: bool = True, log: RunLog | None = None):
        self.path = Path(path) if path else None
        self.enabled = enabled
        self.log = log
        self._ids: set[str] = set()
        if self.enabled and self.path is not None:
            self._load()

    def _warn(self, message: str):
        if self.log is not None:
            self.log.warn(message)

    def _load(self):
        if not self.path.exists():
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                for line in f:
                    post_id = line.strip().lower()
                    if post_id:
                        self._ids.add(post_id)
        except OSError as e:
            self._warn(f"Could not read ledger {self.path}: {e}")

    def seen(self, post_id: str) -> bool:
        if not self.enabled or not post_id:
            return False
        return post_id.strip().lower() in self._ids

    def record(self, post_id: str) -> bool:
        """Mark a post as processed.

        Returns True when the id is durably on disk (or already was). A
        write failure keeps the id in memory for this run and returns False.
        """
        if not self.enabled:
            return True
        key = (post_id or "").strip().lower()
        if not key:
            return False
        if key in self._ids:
            return True
        self._ids.add(key)
        if self.path is None:
            self._warn(f"No ledger file configured, {post_id} is only remembered for this run")
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(key + "\n")
        except OSError as e:
            self._warn(
                f"Could not write {post_id} to ledger {self.path}: {e}. "
                "It will be reprocessed after a restart."
            )
            return False
        return True

    def ids(self) -> list[str]:
        return sorted(self._ids)

    def __len__(self) -> int:
        return len(self._ids)
