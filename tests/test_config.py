"""ConfigStore and live-tuning tests."""

import json

from vision_aim.config import ConfigStore
from vision_aim.live_tuning import RuntimeParamWatcher, apply_params, resolve_key


def test_update_replaces_snapshot(store: ConfigStore) -> None:
    before = store.snapshot()

    assert store.update("aiming.fov_radius", 200)

    after = store.snapshot()
    assert after is not before
    assert after.aiming.fov_radius == 200.0
    assert before.aiming.fov_radius == 150.0


def test_type_mismatch_is_rejected(store: ConfigStore) -> None:
    assert not store.update("aiming.fov_radius", "wide")
    assert not store.update("aiming.instant_snap", 1)
    assert not store.update("detection.max_detections", 2.5)
    assert not store.update("detection.target_class", None)

    assert store.snapshot().aiming.fov_radius == 150.0


def test_unknown_keys_are_rejected(store: ConfigStore) -> None:
    assert not store.update("aiming.nope", 1)
    assert not store.update("nope.fov_radius", 1)


def test_optional_aim_origin(store: ConfigStore) -> None:
    assert store.update("aiming.aim_origin", [10, 20])
    assert store.snapshot().aiming.aim_origin == (10.0, 20.0)
    assert store.update("aiming.aim_origin", None)
    assert not store.update("aiming.aim_origin", [1, 2, 3])


def test_resolve_key() -> None:
    assert resolve_key("fov_radius") == "aiming.fov_radius"
    assert resolve_key("trigger.auto_fire") == "trigger.auto_fire"
    assert resolve_key("enabled") is None           # in several sections
    assert resolve_key("bogus") is None


def test_apply_params_mixed_forms(store: ConfigStore) -> None:
    applied = apply_params(
        store,
        {
            "aiming": {"smoothing": 0.3},
            "trigger.auto_fire": True,
            "prediction_ms": 25,
            "enabled": False,
            "color_threshold": "high",
        },
    )

    cfg = store.snapshot()
    assert applied == 3
    assert cfg.aiming.smoothing == 0.3
    assert cfg.trigger.auto_fire is True
    assert cfg.aiming.prediction_ms == 25.0
    assert cfg.color_assist.color_threshold == 30.0


def test_watcher_reloads_on_change(tmp_path) -> None:
    path = tmp_path / "runtime_params.json"
    path.write_text(json.dumps({"fov_radius": 100}))

    watcher = RuntimeParamWatcher(path)
    assert watcher.get("fov_radius") == 100
    assert not watcher.maybe_reload()

    path.write_text(json.dumps({"fov_radius": 120, "hitbox": "body"}))

    assert watcher.maybe_reload()
    assert watcher.params == {"fov_radius": 120, "hitbox": "body"}


def test_watcher_keeps_old_params_on_bad_json(tmp_path) -> None:
    path = tmp_path / "runtime_params.json"
    path.write_text(json.dumps({"fov_radius": 100}))
    watcher = RuntimeParamWatcher(path)

    path.write_text("{ not json")
    watcher.maybe_reload()

    assert watcher.params == {"fov_radius": 100}


def test_watcher_without_file(tmp_path) -> None:
    watcher = RuntimeParamWatcher(tmp_path / "missing.json")

    assert watcher.params == {}
    assert not watcher.maybe_reload()


def test_watcher_applies_changes_to_store(tmp_path, store: ConfigStore) -> None:
    path = tmp_path / "runtime_params.json"
    path.write_text(json.dumps({"aiming": {"fov_radius": 90}}))
    watcher = RuntimeParamWatcher(path)

    assert watcher.apply_to(store) == 0             # unchanged since load
    assert watcher.apply_to(store, force=True) == 1
    assert store.snapshot().aiming.fov_radius == 90.0

    path.write_text(json.dumps({"aiming": {"fov_radius": 95, "hitbox": "body"}}))

    assert watcher.apply_to(store) == 2
    assert store.snapshot().aiming.hitbox == "body"
