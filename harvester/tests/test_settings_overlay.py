from pathlib import Path

from harvester.jobsync import settings as settings_mod


def test_defaults_without_env_or_runtime(monkeypatch, tmp_path):
    monkeypatch.setattr(settings_mod, 'CONFIG_DIR', tmp_path)
    settings_mod.reset_runtime_cache()
    for name in ('HARVESTER_SETTLE_MS', 'HARVESTER_STRICT_COLLECT', 'HARVESTER_STALE_CHUNK', 'HARVESTER_DB_PATH'):
        monkeypatch.delenv(name, raising=False)
    try:
        s = settings_mod.load_settings()
    finally:
        settings_mod.reset_runtime_cache()
    assert s.settle_ms == 500
    assert s.strict_collect is True
    assert s.stale_chunk_size == 200
    assert s.db_path.name == 'catalog.sqlite'


def test_runtime_yaml_overlay_and_env_precedence(monkeypatch, tmp_path):
    (tmp_path / 'runtime.yml').write_text(
        "harvester_settle_ms: 50\nharvester_strict_collect: false\nharvester_stale_chunk: 10\n",
        encoding='utf-8',
    )
    monkeypatch.setattr(settings_mod, 'CONFIG_DIR', tmp_path)
    settings_mod.reset_runtime_cache()
    monkeypatch.delenv('HARVESTER_STRICT_COLLECT', raising=False)
    monkeypatch.delenv('HARVESTER_STALE_CHUNK', raising=False)
    monkeypatch.setenv('HARVESTER_SETTLE_MS', '5')
    monkeypatch.setenv('HARVESTER_DB_PATH', str(tmp_path / 'x.sqlite'))
    try:
        s = settings_mod.load_settings()
    finally:
        settings_mod.reset_runtime_cache()
    assert s.settle_ms == 5
    assert s.strict_collect is False
    assert s.stale_chunk_size == 10
    assert s.db_path == Path(tmp_path / 'x.sqlite')


def test_invalid_env_number_falls_back_to_default(monkeypatch, tmp_path):
    monkeypatch.setattr(settings_mod, 'CONFIG_DIR', tmp_path)
    settings_mod.reset_runtime_cache()
    monkeypatch.setenv('HARVESTER_MAX_WORKERS', 'many')
    monkeypatch.setenv('HARVESTER_HEADLESS', 'no')
    try:
        s = settings_mod.load_settings()
    finally:
        settings_mod.reset_runtime_cache()
    assert s.max_workers == 4
    assert s.headless is False
