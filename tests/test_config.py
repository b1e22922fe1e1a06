import logging
import os

from scene_snapshot.config import Config, SnapshotOptions
from scene_snapshot.utils import LoggingConfig, sanitize_label, unique_path, write_text_atomic
from scene_snapshot.utils.logging_config import PACKAGE_LOGGER


def test_requested_categories_keep_write_order():
    options = SnapshotOptions(behaviors=False, assets=False)
    assert options.requested_categories() == ['materials', 'textures', 'hierarchy']
    assert SnapshotOptions().requested_categories() == list(Config.CATEGORY_FILES)


def test_reserved_keys_include_extras():
    keys = SnapshotOptions(extra_reserved_keys=['_Secret']).reserved_keys()
    assert '_Secret' in keys
    assert Config.RESERVED_PROPERTY_KEYS <= keys


def test_user_data_dir_follows_environment(isolated_user_data):
    assert Config.get_user_data_dir() == isolated_user_data
    assert Config.get_default_snapshot_location() == isolated_user_data / 'snapshots'
    assert Config.get_logs_directory().is_dir()


def test_bundled_mapping_rules_ship_with_the_package():
    assert Config.PROPERTY_MAPPINGS_FILE.is_file()


def test_setup_logging_writes_a_log_file(tmp_path):
    logger = LoggingConfig.setup_logging(log_dir=tmp_path, level=logging.DEBUG, log_to_console=False)
    try:
        logging.getLogger(f"{PACKAGE_LOGGER}.tests").info("hello")
        for handler in logger.handlers:
            handler.flush()
        log_files = list(tmp_path.glob('snapshot_*.log'))
        assert len(log_files) == 1
        assert 'hello' in log_files[0].read_text(encoding='utf-8')
        assert LoggingConfig.is_initialized()
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_setup_logging_does_not_stack_handlers(tmp_path):
    LoggingConfig.setup_logging(log_dir=tmp_path, log_to_file=False)
    logger = LoggingConfig.setup_logging(log_dir=tmp_path, log_to_file=False)
    try:
        assert len(logger.handlers) == 1
    finally:
        logger.handlers.clear()


def test_level_can_be_forced_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(Config.LOG_LEVEL_ENV, "warning")
    logger = LoggingConfig.setup_logging(log_dir=tmp_path, level=logging.DEBUG, log_to_file=False)
    try:
        assert logger.level == logging.WARNING
        assert LoggingConfig.current_log_file() is None
    finally:
        logger.handlers.clear()


def test_old_log_files_are_pruned(tmp_path):
    old = tmp_path / f"{Config.LOG_FILE_PREFIX}20200101.log"
    recent = tmp_path / f"{Config.LOG_FILE_PREFIX}20260101.log"
    unrelated = tmp_path / "other.log"
    for path in (old, recent, unrelated):
        path.write_text("x", encoding="utf-8")
    os.utime(old, (1_000_000, 1_000_000))
    os.utime(unrelated, (1_000_000, 1_000_000))

    assert LoggingConfig.prune_old_logs(tmp_path, max_age_days=30) == 1
    assert not old.exists()
    assert recent.exists()
    assert unrelated.exists()


def test_path_helpers(tmp_path):
    assert sanitize_label(' ..my/label.. ') == 'my_label'
    assert sanitize_label('') == ''

    (tmp_path / 'snap').mkdir()
    (tmp_path / 'snap_1').mkdir()
    assert unique_path(tmp_path, 'snap') == tmp_path / 'snap_2'
    assert unique_path(tmp_path, 'bundle', suffix='.json') == tmp_path / 'bundle.json'

    target = write_text_atomic(tmp_path / 'out.json', '{}')
    assert target.read_text(encoding='utf-8') == '{}'
    assert [p.name for p in tmp_path.iterdir() if p.name.endswith('.tmp')] == []
