"""
Workspace Loader — feeds a directory tree of scripts into a buffer.

Scans a workspace for JavaScript and HTML files and adds each one to a
JavaScriptBuffer under its workspace-relative path:
  • SOURCE_EXTENSIONS — which extensions are loaded, and as what type
  • SKIP_DIRS         — dependency/build/VCS directories never descended
  • MAX_FILE_BYTES    — larger files (typically minified bundles) are skipped

Files that cannot be read, look binary, or fail to parse are logged and
recorded in ``skipped`` / ``errors``; they never abort the scan.
"""

import os
import logging
from typing import Dict, List, Optional

from jsrename.buffer import JavaScriptBuffer
from jsrename.errors import ParseError

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS: Dict[str, str] = {
    ".js": "js",
    ".mjs": "js",
    ".cjs": "js",
    ".html": "html",
    ".htm": "html",
    ".xhtml": "html",
}

SKIP_DIRS = {
    ".git", ".hg", ".svn", "node_modules", "bower_components", "build",
    "dist", "coverage", "__pycache__", ".vscode", ".idea", "venv", ".venv",
}

MAX_FILE_BYTES = 2 * 1024 * 1024


def _norm_path(p: str) -> str:
    """Workspace-relative paths always use forward slashes."""
    return p.replace("\\", "/")


class WorkspaceLoader:
    """
    Loads every script of a workspace into one buffer.

    Usage:
        loader = WorkspaceLoader("/path/to/site")
        buffer = loader.load()
        groups = buffer.rename_token_at("js/app.js", offset)
    """

    def __init__(self, workspace_root: str, global_id: str = "default",
                 extensions: Optional[Dict[str, str]] = None,
                 buffer: Optional[JavaScriptBuffer] = None):
        self.workspace_root = workspace_root
        self.global_id = global_id
        self.extensions = extensions if extensions is not None else dict(SOURCE_EXTENSIONS)
        self.buffer = buffer if buffer is not None else JavaScriptBuffer()
        self.loaded: List[str] = []
        self.skipped: List[str] = []
        self.errors: Dict[str, str] = {}

    def load(self) -> JavaScriptBuffer:
        """Scan the workspace and add every source file to the buffer."""
        if not os.path.isdir(self.workspace_root):
            raise FileNotFoundError(f"Workspace not found: {self.workspace_root}")
        files = self._discover_files()
        logger.info("WorkspaceLoader: found %d files in %s", len(files), self.workspace_root)
        for rel_path in files:
            self._load_file(rel_path)
        logger.info(
            "WorkspaceLoader: loaded %d, skipped %d, %d parse errors",
            len(self.loaded), len(self.skipped), len(self.errors),
        )
        return self.buffer

    def get_summary(self) -> Dict:
        return {
            "workspace_root": self.workspace_root,
            "global_id": self.global_id,
            "files_loaded": len(self.loaded),
            "js_files": len([f for f in self.loaded if self.source_type(f) == "js"]),
            "html_files": len([f for f in self.loaded if self.source_type(f) == "html"]),
            "programs": len(self.buffer.programs),
            "skipped": len(self.skipped),
            "parse_errors": len(self.errors),
        }

    def source_type(self, path: str) -> Optional[str]:
        return self.extensions.get(os.path.splitext(path)[1].lower())

    def _discover_files(self) -> List[str]:
        """Find all script files in the workspace."""
        files = []
        for root, dirs, filenames in os.walk(self.workspace_root):
            dirs[:] = [d for d in dirs if d not in SKIP_DIRS]
            for fname in filenames:
                if self.source_type(fname) is not None:
                    rel = _norm_path(os.path.relpath(os.path.join(root, fname), self.workspace_root))
                    files.append(rel)
        return sorted(files)

    def _load_file(self, rel_path: str):
        full_path = os.path.join(self.workspace_root, rel_path)
        try:
            if os.path.getsize(full_path) > MAX_FILE_BYTES:
                logger.warning("Skipping %s: larger than %d bytes", rel_path, MAX_FILE_BYTES)
                self.skipped.append(rel_path)
                return
            with open(full_path, "rb") as f:
                raw = f.read()
        except OSError as e:
            logger.error("Cannot read %s: %s", rel_path, e)
            self.skipped.append(rel_path)
            return

        # Skip binary
        if b"\x00" in raw[:8192]:
            self.skipped.append(rel_path)
            return

        # universal newlines are not applied: offsets must match the file on disk
        text = raw.decode("utf-8", errors="replace")
        try:
            self.buffer.add(rel_path, text, global_id=self.global_id, type=self.source_type(rel_path))
        except ParseError as e:
            logger.warning("Parse error in %s", e)
            self.errors[rel_path] = str(e)
            return
        self.loaded.append(rel_path)
