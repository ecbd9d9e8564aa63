"""kickstart run configuration.

Typed settings for a single generation run.  All settings use Pydantic v2
models so they are validated at construction time and can be overridden from
environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from kickstart.schema.models import TEMPLATE_FILE_NAME

_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}


class Config(BaseModel):
    """Settings for one ``kickstart`` run.

    Instances are typically created once by the CLI entry point and passed to
    the template loader and the project generator.
    """

    output_dir: Path = Field(default=Path("."), description="Where the project is written")
    directory: Optional[str] = Field(
        default=None,
        description="Sub-directory of the template source that holds template.toml",
    )
    no_input: bool = Field(default=False, description="Use defaults instead of prompting")
    template_file: str = Field(default=TEMPLATE_FILE_NAME)
    clone_timeout: int = Field(default=300, ge=10, description="git clone timeout in seconds")
    download_timeout: int = Field(
        default=60, ge=5, description="Archive download timeout in seconds"
    )

    @property
    def destination(self) -> Path:
        """Absolute destination directory."""
        return self.output_dir.expanduser().resolve()

    @classmethod
    def from_env(cls, **overrides: Any) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            KICKSTART_OUTPUT_DIR, KICKSTART_NO_INPUT,
            KICKSTART_CLONE_TIMEOUT, KICKSTART_DOWNLOAD_TIMEOUT.

        Keyword arguments win over the environment; ``None`` values are
        ignored so CLI options that were not given fall through.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("KICKSTART_OUTPUT_DIR"):
            kwargs["output_dir"] = Path(os.environ["KICKSTART_OUTPUT_DIR"])
        if os.environ.get("KICKSTART_NO_INPUT"):
            kwargs["no_input"] = os.environ["KICKSTART_NO_INPUT"].strip().lower() in _TRUE_STRINGS
        if os.environ.get("KICKSTART_CLONE_TIMEOUT"):
            kwargs["clone_timeout"] = int(os.environ["KICKSTART_CLONE_TIMEOUT"])
        if os.environ.get("KICKSTART_DOWNLOAD_TIMEOUT"):
            kwargs["download_timeout"] = int(os.environ["KICKSTART_DOWNLOAD_TIMEOUT"])

        kwargs.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**kwargs)
