"""Project-confined file tools."""

from codebox.tools.dir_utils import copy_directory, create_temp_directory, remove_directory
from codebox.tools.file_io import ProjectFileIO
from codebox.tools.sandbox import is_contained, resolve_contained

__all__ = [
    "ProjectFileIO",
    "copy_directory",
    "create_temp_directory",
    "is_contained",
    "remove_directory",
    "resolve_contained",
]
