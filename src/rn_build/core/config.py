from pathlib import Path
import os
from tempfile import gettempdir

"""
Base location for per-run build workspaces.

Every run gets its own directory under <tmp>/rn-build/<prefix>/.
The temporary base can be overridden with the RN_BUILD_WORKDIR environment variable.
"""

BASE_TEMP_DIR = Path(
    os.getenv("RN_BUILD_WORKDIR", gettempdir())
) / "rn-build"

# columns kept free on the right of wrapped subprocess output
WRAP_MARGIN = 11

# subprocess pipes are read in chunks of this size, never line by line
READ_CHUNK = 65536

BUILD_LOG_NAME = "build.log"

DEFAULT_BRANCH = "master"
DEFAULT_LANE = "qa"
RELEASE_LANE = "release"

COUNTER_TIMEOUT = 30.0
