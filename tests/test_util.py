import pytest

from k3sjoin.util.util import (name_validation, merge, load_config, redact,
                               retry, ConfigError, DEFAULT_CONFIG)


def test_names():
    """test name_validation func using different cluster-names"""
    for cluster_name in ["example", "11-04-2019-example", "example-11-04"]:
        assert name_validation(cluster_name) == cluster_name

    for cluster_name in ["bad" * 250, "bad:)chars", "", None, 42]:
        with pytest.raises(ConfigError):
            name_validation(cluster_name)


def test_merge_keeps_defaults():
    merged = merge(DEFAULT_CONFIG, {"worker": {"retries": 9}})
    assert merged["worker"]["retries"] == 9
    assert merged["worker"]["delay"] == DEFAULT_CONFIG["worker"]["delay"]
    # defaults are not modified
    assert DEFAULT_CONFIG["worker"]["retries"] == 5


def test_load_config(tmp_path):
    path = tmp_path / "cluster.yml"
    path.write_text("cluster-name: demo\nstore:\n  backend: file\n")

    config = load_config(str(path))
    assert config["cluster-name"] == "demo"
    assert config["store"]["backend"] == "file"
    assert config["store"]["identifier"] == "demo-k3s"
    assert config["control-plane"]["port"] == 6443


@pytest.mark.parametrize("content", [
    "- a\n- b\n",
    "store:\n  backend: s3\n",
    "cluster-name: demo\nstore:\n  backend: s3\n",
    "cluster-name: demo\nworker:\n  retries: -1\n",
    "cluster-name: demo\nworker:\n  join-attempts: 0\n",
    "cluster-name: demo\nworker:\n  delay: soon\n",
    "cluster-name: demo\ncontrol-plane:\n  k3s-args: --disable\n",
])
def test_invalid_config(tmp_path, content):
    path = tmp_path / "cluster.yml"
    path.write_text(content)

    with pytest.raises(ConfigError):
        load_config(str(path))


def test_redact():
    assert redact("K10abc123::server:secret") == "K10a****"
    assert "secret" not in redact("K10abc123::server:secret")
    assert redact("") == "<empty>"
    assert redact(None) == "<empty>"


def test_retry_backoff():
    delays = []
    calls = []

    @retry(KeyError, tries=5, delay=1, backoff=2, max_delay=5,
           sleep=delays.append)
    def flaky():
        calls.append(1)
        if len(calls) < 5:
            raise KeyError("missing")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 5
    assert delays == [1, 2, 4, 5]


def test_retry_gives_up():
    messages = []

    @retry(KeyError, tries=3, delay=1, logger=messages.append,
           sleep=lambda s: None)
    def always():
        raise KeyError("missing")

    with pytest.raises(KeyError):
        always()
    assert len(messages) == 2
    assert "Retrying in 1 seconds" in messages[0]


def test_retry_other_exceptions_propagate():
    calls = []

    @retry(KeyError, tries=3, delay=1, sleep=lambda s: None)
    def broken():
        calls.append(1)
        raise ValueError("no")

    with pytest.raises(ValueError):
        broken()
    assert len(calls) == 1
