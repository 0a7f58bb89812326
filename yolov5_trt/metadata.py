from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union


def _strip_quotes(text: str) -> str:
    return text.strip().strip("'").strip('"')


def _parse_names_yaml(lines: List[str]) -> List[str]:
    """
    Parse the `names:` block of a YOLOv5 dataset/metadata YAML.

    Both forms written by YOLOv5 exports are accepted:

        names:            names:
          0: person         - person
          1: bicycle        - bicycle
    """

    indexed: Dict[int, str] = {}
    listed: List[str] = []
    in_names = False

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue
        if not raw[:1].isspace():
            # Next top-level key ends the block.
            break

        if line.startswith("- "):
            listed.append(_strip_quotes(line[2:]))
            continue
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        if not left.isdigit():
            continue
        indexed[int(left)] = _strip_quotes(right)

    if listed:
        return listed
    if sorted(indexed) != list(range(len(indexed))):
        raise ValueError(f"Class ids must be dense 0..N-1, got {sorted(indexed)}")
    return [indexed[i] for i in range(len(indexed))]


def load_class_names(path: Union[str, Path]) -> List[str]:
    """
    Load an ordered list of class names.

    `.yaml`/`.yml` files are read as a YOLOv5 `names:` block; anything else
    (e.g. `coco.names`) is read as one name per non-empty line.
    """

    p = Path(path)
    lines = p.read_text(encoding="utf-8").splitlines()
    if p.suffix.lower() in {".yaml", ".yml"}:
        return _parse_names_yaml(lines)
    return [line.strip() for line in lines if line.strip()]
