# sarif_issues/utils/file_utils.py

"""
Utility functions for file operations in sarif-issues.

Provides helpers for:
  - Reading and writing text and JSON files with proper encoding
  - Ensuring directories exist before writing
  - Listing files by extension (used to build the guidance hash manifest)
"""

import json
import os
from typing import Any, List


def read_text_file(path: str, encoding: str = "utf-8") -> str:
    """
    Read and return the entire contents of a text file.

    Raises FileNotFoundError if the file does not exist.

    :param path: Path to the text file
    :param encoding: Encoding to use (default: utf-8)
    :return: File contents as a single string
    """
    with open(path, mode="r", encoding=encoding) as f:
        return f.read()


def read_json_file(path: str, encoding: str = "utf-8") -> Any:
    """
    Decode a JSON document from `path`.

    Raises FileNotFoundError or json.JSONDecodeError; callers decide whether
    either is fatal.
    """
    with open(path, mode="r", encoding=encoding) as f:
        return json.load(f)


def write_text_file(path: str, content: str, encoding: str = "utf-8") -> None:
    """
    Write the given content to a text file, creating parent directories if needed.

    :param path: Path to the output text file
    :param content: String content to write
    :param encoding: Encoding to use (default: utf-8)
    """
    directory = os.path.dirname(path)
    if directory:
        ensure_directory(directory)
    with open(path, mode="w", encoding=encoding) as f:
        f.write(content)


def write_json_file(path: str, data: Any) -> None:
    write_text_file(path, json.dumps(data, indent=2) + "\n")


def ensure_directory(path: str) -> None:
    """
    Ensure that the directory `path` exists. If it does not, create it (recursively).

    :param path: Directory path to create or verify
    """
    if not os.path.exists(path):
        os.makedirs(path, exist_ok=True)


def list_files_with_extension(root_dir: str, extension: str, exclude_names: List[str] = None) -> List[str]:
    """
    Return the sorted names of files directly under `root_dir` that end with
    the given extension.

    :param root_dir: Directory to search
    :param extension: File extension to match (e.g., ".md")
    :param exclude_names: File names to leave out (e.g., ["index.md"])
    :return: Sorted list of matching file names
    """
    exclude = set(exclude_names or [])
    ext = extension.lower()
    names = []
    for fname in os.listdir(root_dir):
        if fname in exclude or not fname.lower().endswith(ext):
            continue
        if os.path.isfile(os.path.join(root_dir, fname)):
            names.append(fname)
    return sorted(names)
