"""
File operation utilities
"""

from pathlib import Path
from typing import List

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.bmp'}


def get_image_files(directory: str) -> List[str]:
    """
    List supported image files directly inside directory, sorted by path

    Other files and subdirectories are skipped. Raises OSError if the
    directory cannot be read.
    """
    image_files = [
        entry for entry in Path(directory).iterdir()
        if entry.is_file() and entry.suffix.lower() in IMAGE_EXTENSIONS
    ]

    return sorted(str(f) for f in image_files)
