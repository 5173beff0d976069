"""Credential source: author e-mail and password from the environment or a .env file."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from dotenv import dotenv_values

from leanpub_scout.errors import CredentialsError
from leanpub_scout.models import Credentials

EMAIL_VAR = "LEANPUB_EMAIL"
PASSWORD_VAR = "LEANPUB_PASSWORD"


def load_credentials(env_file: Union[str, Path, None] = ".env") -> Credentials:
    """
    Build Credentials from ``LEANPUB_EMAIL`` / ``LEANPUB_PASSWORD``.

    Process environment variables win over values from *env_file*; a missing
    file is not an error, missing values are.
    """
    file_values: dict[str, Optional[str]] = {}
    if env_file is not None and Path(env_file).is_file():
        file_values = dotenv_values(env_file)

    email = os.environ.get(EMAIL_VAR) or file_values.get(EMAIL_VAR) or ""
    password = os.environ.get(PASSWORD_VAR) or file_values.get(PASSWORD_VAR) or ""
    missing = [name for name, value in ((EMAIL_VAR, email), (PASSWORD_VAR, password)) if not value]
    if missing:
        raise CredentialsError(f"Missing {' and '.join(missing)} in environment or {env_file}")
    return Credentials(username=email, password=password)
