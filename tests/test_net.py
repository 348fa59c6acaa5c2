import pytest

from k3sjoin.util.net import ClusterEndpoint, is_port, is_ip, is_host


def test_is_port():
    for port in [1, 80, 6443, 65535]:
        assert is_port(port)
    for port in [0, -1, 65536, "6443", None, True]:
        assert not is_port(port)


def test_is_ip():
    assert is_ip("10.0.0.5")
    assert is_ip("fd00::5")
    assert not is_ip("10.0.0.256")
    assert not is_ip("example.com")


def test_is_host():
    assert is_host("10.0.0.5")
    assert is_host("control-plane.example.com")
    assert not is_host("")
    assert not is_host("bad host")
    assert not is_host(None)


@pytest.mark.parametrize("value,host,port", [
    ("10.0.0.5", "10.0.0.5", 6443),
    ("10.0.0.5:6443", "10.0.0.5", 6443),
    ("https://10.0.0.5:7443", "10.0.0.5", 7443),
    (b"10.0.0.5:6443", "10.0.0.5", 6443),
    ("k3s.example.com", "k3s.example.com", 6443),
    ("[fd00::5]:6443", "fd00::5", 6443),
    ("fd00::5", "fd00::5", 6443),
])
def test_parse(value, host, port):
    endpoint = ClusterEndpoint.parse(value)
    assert endpoint.host == host
    assert endpoint.port == port


@pytest.mark.parametrize("value", [
    "", "   ", None, "10.0.0.5:http", "10.0.0.5:70000", "https://:6443",
])
def test_parse_invalid(value):
    with pytest.raises(ValueError):
        ClusterEndpoint.parse(value)


def test_url_and_str():
    endpoint = ClusterEndpoint("10.0.0.5")
    assert endpoint.url == "https://10.0.0.5:6443"
    assert str(endpoint) == "10.0.0.5:6443"

    v6 = ClusterEndpoint("fd00::5", 7443)
    assert v6.url == "https://[fd00::5]:7443"
    assert ClusterEndpoint.parse(str(v6)) == v6


def test_equality():
    assert ClusterEndpoint("10.0.0.5") == ClusterEndpoint.parse("10.0.0.5:6443")
    assert ClusterEndpoint("10.0.0.5") != ClusterEndpoint("10.0.0.6")
    assert len({ClusterEndpoint("10.0.0.5"), ClusterEndpoint("10.0.0.5")}) == 1
