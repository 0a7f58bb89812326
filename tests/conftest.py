from __future__ import annotations

import sys
from pathlib import Path


def _ensure_paths_on_syspath() -> None:
    # Some pytest import modes may not include the repo root (for `import yolov5_trt`)
    # or this directory (for the shared `fakes` helpers) on sys.path.
    here = Path(__file__).resolve().parent
    for path in (here.parent, here):
        path_str = str(path)
        if path_str not in sys.path:
            sys.path.insert(0, path_str)


_ensure_paths_on_syspath()
