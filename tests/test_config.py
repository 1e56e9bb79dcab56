import json
import pytest
from vcscache.archive import CommandArchiver, TarArchiver
from vcscache.cache import ArtifactCache
from vcscache.config import CacheConfig, build_cache
from vcscache.transfer import CommandTransferer, HTTPTransferer, RetryingTransferer


def test_defaults():
    cfg = CacheConfig.from_mapping({}, environ={})
    assert cfg.cache_dir == "~/.tc-vcs"
    assert cfg.cache_name == "{name}.tar.gz"
    assert cfg.root_url == "http://taskcluster"
    assert (cfg.download_attempts, cfg.upload_attempts) == (20, 10)
    cfg.validate()


def test_from_toml_with_env_overrides(tmp_path):
    path = tmp_path / "vcscache.toml"
    path.write_text(
        '[cache]\n'
        'cache_dir = "$HOME/.cache/vcs"\n'
        'root_url = "https://tc.example.com/"\n'
        'download_attempts = 3\n'
        'get = ["curl", "-o", "{dest}", "{url}"]\n'
        'upload_tar = ["curl", "-T", "{source}", "{url}"]\n'
    )
    env = {"VCSCACHE_UPLOAD_ATTEMPTS": "4", "VCSCACHE_EXTRACT": "tar -xzf {source} -C {dest}",
           "VCSCACHE_COMPRESS": "tar -czf {dest} {files}"}
    cfg = CacheConfig.from_file(str(path), environ=env)
    assert cfg.cache_dir == "$HOME/.cache/vcs"
    assert cfg.root_url == "https://tc.example.com"
    assert (cfg.download_attempts, cfg.upload_attempts) == (3, 4)
    assert cfg.get == ["curl", "-o", "{dest}", "{url}"]
    assert cfg.extract == ["tar", "-xzf", "{source}", "-C", "{dest}"]
    cfg.validate()
    assert isinstance(cfg.archiver(), CommandArchiver)
    transferer = cfg.transferer()
    assert isinstance(transferer, RetryingTransferer)
    assert isinstance(transferer.inner, CommandTransferer)
    assert (transferer.download_attempts, transferer.upload_attempts) == (3, 4)


def test_from_json(tmp_path):
    path = tmp_path / "vcscache.json"
    path.write_text(json.dumps({"cache_dir": "/c", "cache_name": "{name}.tgz", "timeout": 30}))
    cfg = CacheConfig.from_file(str(path), environ={"TASKCLUSTER_ROOT_URL": "https://tc"})
    assert (cfg.cache_dir, cfg.cache_name, cfg.timeout, cfg.root_url) == ("/c", "{name}.tgz", 30, "https://tc")
    assert isinstance(cfg.archiver(), TarArchiver)
    assert isinstance(cfg.transferer().inner, HTTPTransferer)


@pytest.mark.parametrize("changes,key", [
    ({"cache_dir": ""}, "cache_dir"),
    ({"cache_name": "static.tar.gz"}, "cache_name"),
    ({"download_attempts": 0}, "download_attempts"),
    ({"get": ["curl"]}, "get/upload_tar"),
    ({"compress": ["tar"]}, "extract/compress"),
])
def test_validate_rejects(changes, key):
    cfg = CacheConfig.from_mapping(changes, environ={})
    with pytest.raises(SystemExit) as exc:
        cfg.validate()
    assert key in str(exc.value)


def test_build_cache_wires_environment():
    cfg = CacheConfig.from_mapping({"cache_dir": "$WORKSPACE/cache"}, environ={})
    cache = build_cache(cfg, environ={"WORKSPACE": "/ws", "TASK_ID": "T1", "RUN_ID": "2"})
    assert isinstance(cache, ArtifactCache)
    assert cache.local_path("repo") == "/ws/cache/repo.tar.gz"
    assert (cache.env.task_id, cache.env.run_id) == ("T1", "2")
