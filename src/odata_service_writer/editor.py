"""
Staged project editor.

All reads and writes of one or more generate/remove calls go through a
ProjectEditor. Writes are kept in memory until commit(), reads see the
staged state first and fall back to the real filesystem. Passing the same
editor to several calls accumulates their changes; callers own the
editor and must not share one instance between concurrent calls.

Usage:
    editor = ProjectEditor()
    generate(base_path, service, editor)
    for path, content in editor.pending().items():
        print(path, "deleted" if content is None else "changed")
    editor.commit()
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _key(path: PathLike) -> str:
    return os.path.abspath(os.fspath(path))


class ProjectEditor:
    """In-memory staged view over the filesystem."""

    def __init__(self):
        # absolute path -> staged content, None marks a staged delete
        self._staged: Dict[str, Optional[str]] = {}

    def exists(self, path: PathLike) -> bool:
        key = _key(path)
        if key in self._staged:
            return self._staged[key] is not None
        return os.path.isfile(key)

    def read(self, path: PathLike) -> str:
        key = _key(path)
        if key in self._staged:
            content = self._staged[key]
            if content is None:
                raise FileNotFoundError(key)
            return content
        with open(key, encoding="utf-8") as f:
            return f.read()

    def write(self, path: PathLike, content: str) -> None:
        key = _key(path)
        logger.debug("Staged write: %s", key)
        self._staged[key] = content

    def read_json(self, path: PathLike) -> Any:
        return json.loads(self.read(path))

    def write_json(self, path: PathLike, data: Any) -> None:
        self.write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")

    def delete(self, path: PathLike) -> None:
        key = _key(path)
        if self.exists(key):
            logger.debug("Staged delete: %s", key)
            self._staged[key] = None

    def move(self, source: PathLike, target: PathLike) -> None:
        content = self.read(source)
        self.write(target, content)
        self.delete(source)

    def copy_tpl(self, template: PathLike, target: PathLike, context: Dict[str, Any]) -> None:
        """Render a Jinja2 template file into target."""
        template_path = Path(template)
        env = Environment(
            loader=FileSystemLoader(str(template_path.parent)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        content = env.get_template(template_path.name).render(**context)
        self.write(target, content)

    def pending(self) -> Dict[str, Optional[str]]:
        """Staged changes: path -> new content, or None for deletions."""
        return dict(self._staged)

    def commit(self) -> List[str]:
        """Flush staged changes to disk. Returns the touched paths."""
        touched = []
        for key, content in sorted(self._staged.items()):
            if content is None:
                if os.path.isfile(key):
                    os.remove(key)
                    touched.append(key)
                continue
            os.makedirs(os.path.dirname(key), exist_ok=True)
            with open(key, "w", encoding="utf-8") as f:
                f.write(content)
            touched.append(key)
        logger.info("Committed %d file(s)", len(touched))
        self._staged.clear()
        return touched
