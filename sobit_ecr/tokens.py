"""Token generation and per-identifier persistence."""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from pathlib import Path

LOGGER = logging.getLogger(__name__)

TOKEN_ALPHABET = string.digits + string.ascii_lowercase


def generate_token(length: int = 64) -> str:
    """Return a random token of ``length`` characters from ``[0-9a-z]``."""

    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


@dataclass
class TokenStore:
    """One token file per identifier, created on first use."""

    directory: Path
    length: int = 64

    def path_for(self, identifier: str) -> Path:
        if not identifier or "/" in identifier or "\\" in identifier or identifier in {".", ".."}:
            raise ValueError(f"Invalid identifier {identifier!r}")
        return self.directory / f"{identifier}.dat"

    def load_or_create(self, identifier: str) -> str:
        """Load a persisted token or generate and persist a new one."""

        path = self.path_for(identifier)
        if path.is_file():
            existing = path.read_text(encoding="utf-8").strip()
            if existing:
                return existing
            LOGGER.warning("Token file %s is empty; generating a new token", path)

        token = generate_token(self.length)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(token, encoding="utf-8")
        LOGGER.info("Generated token for %s at %s", identifier, path)
        return token
