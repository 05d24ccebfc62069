from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    # Explicit path to a shared library exporting the MLIR C API.  When unset,
    # the library bundled with the installed ``mlir`` Python package is used.
    capi_library: str | None = os.getenv("MLIRSAFE_CAPI_LIBRARY") or None

    log_level: str = os.getenv("MLIRSAFE_LOG_LEVEL", "WARNING").upper()


settings = Settings()
