"""Local persistence of the auth token set.

The only state kept across process restarts.  The file is written
atomically (temp file + ``os.replace()``) so readers never see partial
data.  A corrupt or schema-invalid file is treated as "no tokens".
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .errors import SchemaValidationError
from .models import TokenSet, parse_as

logger = logging.getLogger(__name__)


class TokenStore:
    """Load, save and clear the token file.

    Args:
        path: Location of the JSON token file.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> TokenSet | None:
        """Return the stored tokens, or ``None`` if absent or unreadable."""
        if not self._path.exists():
            return None
        try:
            with open(self._path, encoding="utf-8") as fh:
                raw = json.load(fh)
            return parse_as(TokenSet, raw)
        except (ValueError, SchemaValidationError) as e:
            logger.warning(
                "Ignoring unreadable token file %s: %s", self._path, e
            )
            return None

    def save(self, tokens: TokenSet) -> None:
        """Persist *tokens* atomically, creating the directory if needed."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._path.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(tokens.model_dump(), fh, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self._path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def clear(self) -> None:
        """Remove the token file. No-op if it does not exist."""
        self._path.unlink(missing_ok=True)
