"""
MIME Type Detection

Asks `file --mime-type` first (content based), then the extension table in
`mimetypes`. Returns None when neither knows; the caller falls back to
application/octet-stream.
"""

import logging
import mimetypes
import re
import shutil
import subprocess
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# "path: type/subtype"
FILE_OUTPUT_RE = re.compile(r'.*: ([^/\s]+/[^/\s]+)$')

FILE_TIMEOUT = 5.0


def mime_from_file_tool(path: Path) -> Optional[str]:
    """Classify by content with the external `file` tool."""
    tool = shutil.which('file')
    if not tool:
        return None

    try:
        result = subprocess.run(
            [tool, '--mime-type', '--', str(path)],
            capture_output=True, text=True, timeout=FILE_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"file --mime-type failed: {e}")
        return None

    if result.returncode != 0:
        return None

    match = FILE_OUTPUT_RE.match(result.stdout.strip())
    return match.group(1) if match else None


def detect_mime(path: Path) -> Optional[str]:
    mime = mime_from_file_tool(path)
    if mime:
        return mime

    mime, _ = mimetypes.guess_type(str(path))
    return mime
