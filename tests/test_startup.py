from showshelf.models.config import Config
from showshelf.services.scanner import DEFAULT_MAX_DEPTH, DEFAULT_VIDEO_EXTENSIONS
from showshelf.startup import (
    DEFAULT_CONFIGS,
    add_library_root,
    get_config_value,
    get_library_roots,
    get_log_level_from_db,
    init_config,
    load_scan_settings,
    set_config_value,
)


def test_init_config_seeds_defaults_once(database):
    init_config(database)
    set_config_value(database, "log_level", "DEBUG")
    init_config(database)

    with database.session() as db:
        assert db.query(Config).count() == len(DEFAULT_CONFIGS)
        assert get_config_value(db, "log_level") == "DEBUG"


def test_default_scan_settings(database):
    init_config(database)

    with database.session() as db:
        settings = load_scan_settings(db)

    assert settings.video_extensions == DEFAULT_VIDEO_EXTENSIONS
    assert settings.max_depth == DEFAULT_MAX_DEPTH
    assert settings.casefold is None


def test_configured_scan_settings(database):
    init_config(database)
    set_config_value(database, "video_extensions", ".MKV, avi,")
    set_config_value(database, "scan_max_depth", "2")
    set_config_value(database, "casefold_paths", "true")

    with database.session() as db:
        settings = load_scan_settings(db)

    assert settings.video_extensions == frozenset({"mkv", "avi"})
    assert settings.max_depth == 2
    assert settings.casefold is True


def test_invalid_config_value_falls_back_to_default(database):
    init_config(database)
    set_config_value(database, "scan_max_depth", "deep")

    with database.session() as db:
        assert get_config_value(db, "scan_max_depth", 7) == 7


def test_library_roots(database):
    init_config(database)

    assert add_library_root(database, "/media/anime") == ["/media/anime"]
    assert add_library_root(database, "/media/series") == ["/media/anime", "/media/series"]
    assert add_library_root(database, "/media/anime") == ["/media/anime", "/media/series"]

    with database.session() as db:
        assert get_library_roots(db) == ["/media/anime", "/media/series"]


def test_library_roots_without_seed(database):
    add_library_root(database, "/media/anime")

    with database.session() as db:
        assert get_library_roots(db) == ["/media/anime"]


def test_log_level_from_db(database):
    assert get_log_level_from_db(database) is None
    init_config(database)
    set_config_value(database, "log_level", "debug")
    assert get_log_level_from_db(database) == "DEBUG"
