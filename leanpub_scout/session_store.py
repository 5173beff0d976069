"""
Persistence of the session cookie between runs.

The file holds only the cookie name, value and the moment it was obtained;
credentials are never written.
"""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from leanpub_scout.logger import logger
from leanpub_scout.models import Session


def load_session(path: Union[str, Path], cookie_name: str) -> Optional[Session]:
    """Return the stored Session, or None when the file is absent or unusable."""
    p = Path(path)
    if not p.is_file():
        logger.debug("Cookie file %s not found, a new session will be started", p)
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
        if data.get("cookie_name") != cookie_name:
            logger.info("Cookie file %s holds another cookie, ignoring it", p)
            return None
        session = Session(
            cookie_value=str(data["cookie_value"]),
            obtained_at=datetime.fromisoformat(data["obtained_at"]),
            valid=True,
            cookie_name=cookie_name,
        )
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
        logger.warning("Error reading cookie file %s: %s", p, exc)
        return None
    logger.info("Loaded session cookie from %s", p)
    return session


def save_session(path: Union[str, Path], session: Session) -> Path:
    """Write *session* to *path* and return the path."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "cookie_name": session.cookie_name,
        "cookie_value": session.cookie_value,
        "obtained_at": session.obtained_at.isoformat(),
    }
    p.write_text(json.dumps(data, indent=2), encoding="utf-8")
    p.chmod(0o600)
    logger.info("Session cookie saved to %s", p)
    return p
