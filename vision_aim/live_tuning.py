# live_tuning.py
"""
Live tuning: poll ``runtime_params.json`` and push changed values into the
ConfigStore.  Every loop reads the store once per tick, so an edit is live on
the next tick of each thread.
"""
from __future__ import annotations

import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from vision_aim.config import ConfigStore, SystemConfig

Stamp = Tuple[float, int]


def resolve_key(key: str, config: Optional[SystemConfig] = None) -> Optional[str]:
    """
    Map a flat key (``"fov_radius"``) to its dotted form
    (``"aiming.fov_radius"``). Dotted keys pass through; ambiguous or
    unknown flat keys give None.
    """
    if "." in key:
        return key
    cfg = config or SystemConfig()
    hits = [
        f"{section.name}.{key}"
        for section in fields(cfg)
        if key in {f.name for f in fields(getattr(cfg, section.name))}
    ]
    return hits[0] if len(hits) == 1 else None


def _flatten(params: Dict[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for key, value in params.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            yield from _flatten(value, f"{name}.")
        else:
            yield name, value


def apply_params(store: ConfigStore, params: Dict[str, Any]) -> int:
    """
    Push JSON parameters into the store.  Nested objects
    (``{"aiming": {"smoothing": 0.1}}``), dotted keys and unambiguous flat
    keys are all accepted.  Returns the number of values applied.
    """
    applied = 0
    for key, value in _flatten(params):
        dotted = resolve_key(key, store.snapshot())
        if dotted is None:
            print(f"[Runtime] Ignoring unknown or ambiguous key {key!r}")
            continue
        if store.update(dotted, value):
            applied += 1
    return applied


class RuntimeParamWatcher:
    """
    Tracks one JSON parameter file by (mtime, size).  ``params`` always
    holds the last file contents that parsed; a broken or deleted file
    leaves them in place.
    """

    def __init__(self, path: str | Path = "runtime_params.json") -> None:
        self.path = Path(path).expanduser().resolve()
        self.params: Dict[str, Any] = {}
        self._seen: Optional[Stamp] = None

        print(f"[Runtime] Live tuning file: {self.path}")
        if self._stamp() is None:
            print("[Runtime] File absent, live tuning idle until it is created.")
        else:
            self._read()

    def _stamp(self) -> Optional[Stamp]:
        try:
            st = self.path.stat()
        except OSError:
            return None
        return st.st_mtime, st.st_size

    def _read(self) -> bool:
        self._seen = self._stamp()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            print(f"[Runtime] Could not read {self.path.name}, keeping previous values: {exc}")
            return False
        if not isinstance(data, dict):
            print(f"[Runtime] {self.path.name} must hold a JSON object, keeping previous values")
            return False
        self.params = data
        return True

    def maybe_reload(self) -> bool:
        """True when the file changed and its new contents were taken."""
        stamp = self._stamp()
        if stamp is None or stamp == self._seen:
            return False
        # Coarse mtime resolution on some filesystems: size change counts too
        return self._read()

    def apply_to(self, store: ConfigStore, *, force: bool = False) -> int:
        """Reload if changed (or ``force``) and push into ``store``."""
        if not (self.maybe_reload() or force) or not self.params:
            return 0
        applied = apply_params(store, self.params)
        print(f"[Runtime] Applied {applied} parameter(s) from {self.path.name}")
        return applied

    def get(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)
