"""
tests for k3sjoin.provision.cloud_init
"""
import base64
import email

import pytest
import yaml

from k3sjoin.provision.cloud_init import (ControlPlaneInit, WorkerInit,
                                          CONFIG_PATH, INFO_PATH)

from .testdata import CONFIG


@pytest.fixture
def ci_control_plane():
    return ControlPlaneInit(CONFIG)


@pytest.fixture
def ci_worker():
    return WorkerInit(CONFIG, endpoint="10.0.0.5")


def _files(ci):
    return {f['path']: f for f in ci._cloud_config_data['write_files']}


def test_config_is_written(ci_worker):
    files = _files(ci_worker)
    assert set(files) == {CONFIG_PATH, INFO_PATH}
    config = yaml.safe_load(base64.b64decode(files[CONFIG_PATH]['content']))
    assert config == CONFIG
    assert files[CONFIG_PATH]['permissions'] == "0600"


def test_info_file(ci_control_plane):
    info = base64.b64decode(_files(ci_control_plane)[INFO_PATH]['content'])
    assert b"role=control-plane" in info
    assert b"k3sjoin_version=" in info


def test_bootstrap_script_control_plane(ci_control_plane):
    part = ci_control_plane.bootstrap_script()
    assert part.get_filename() == 'bootstrap-k3s-control-plane.sh'
    assert "k3sjoin --verbosity 4 init --config %s" % CONFIG_PATH in \
        part.get_payload(decode=True).decode()


def test_bootstrap_script_worker(ci_worker):
    name, script = ci_worker._get_bootstrap_script()
    assert name == 'bootstrap-k3s-worker.sh'
    assert "join --config %s --endpoint 10.0.0.5:6443" % CONFIG_PATH in script


def test_worker_without_endpoint():
    _, script = WorkerInit(CONFIG)._get_bootstrap_script()
    assert "--endpoint" not in script


def test_worker_invalid_endpoint():
    with pytest.raises(ValueError):
        WorkerInit(CONFIG, endpoint="10.0.0.5:http")


def test_userdata_is_multipart(ci_worker):
    userdata = email.message_from_string(str(ci_worker))
    parts = [p.get_content_type() for p in userdata.get_payload()]
    assert parts == ['text/cloud-config', 'text/x-shellscript']

    cloud_config = yaml.safe_load(
        userdata.get_payload()[0].get_payload(decode=True))
    assert set(cloud_config) == {'write_files'}


def test_userdata_rendered_twice_is_unchanged(ci_control_plane):
    first = email.message_from_string(str(ci_control_plane))
    second = email.message_from_string(str(ci_control_plane))

    for userdata in (first, second):
        scripts = [p for p in userdata.get_payload()
                   if p.get_content_type() == 'text/x-shellscript']
        assert len(scripts) == 1
        assert scripts[0].get_filename() == 'bootstrap-k3s-control-plane.sh'
