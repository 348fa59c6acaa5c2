"""
controlplane
============

Start the k3s server on the control plane instance and publish everything
a worker needs to join into the shared store.

Publishing order is ``node-token``, ``k3s.yaml``, ``endpoint`` and last
the ``ready`` marker. Workers wait for the marker, so they never pick up a
half published cluster.
"""
import os
import threading
import time
from datetime import datetime, timezone

import urllib3
import yaml

from k3sjoin.k3s import (run_installer, InstallerError, INSTALLER_URL,
                         TOKEN_FILE, KUBECONFIG_FILE)
from k3sjoin.store import NODE_TOKEN, KUBECONFIG, ENDPOINT, READY, StoreError
from k3sjoin.util.logger import Logger
from k3sjoin.util.net import ClusterEndpoint, DEFAULT_API_PORT, is_ip
from k3sjoin.util.util import redact

LOGGER = Logger(__name__)

METADATA_URL = "http://169.254.169.254/latest/meta-data/public-ipv4"


class StartupError(Exception):
    """Raised if the control plane can't be started or published"""


def discover_public_address(metadata_url=METADATA_URL, timeout=2.0):
    """
    Ask the instance metadata service for the public IPv4 address.

    Raises:
        StartupError if the service can't be reached or returns garbage.
    """
    http = urllib3.PoolManager()
    try:
        resp = http.request("GET", metadata_url,
                            timeout=urllib3.Timeout(total=timeout),
                            retries=urllib3.Retry(total=3, backoff_factor=0.5))
    except urllib3.exceptions.HTTPError as exc:
        raise StartupError(f"metadata service unreachable: {exc}")

    if resp.status != 200:
        raise StartupError(
            f"metadata service returned HTTP {resp.status} for {metadata_url}")

    address = resp.data.decode().strip()
    if not is_ip(address):
        raise StartupError(f"metadata service returned no IP: '{address}'")
    return address


def rewrite_kubeconfig(kubeconfig, endpoint):
    """
    Point every cluster of a kubeconfig at endpoint.

    k3s writes its kubeconfig with ``https://127.0.0.1:6443`` which is
    useless outside the control plane instance.

    Args:
        kubeconfig (str or bytes): the kubeconfig YAML
        endpoint (ClusterEndpoint): the public endpoint

    Returns:
        the rewritten kubeconfig as str
    """
    config = yaml.safe_load(kubeconfig)
    if not isinstance(config, dict) or not config.get('clusters'):
        raise ValueError("kubeconfig has no clusters")
    for cluster in config['clusters']:
        cluster['cluster']['server'] = endpoint.url
    return yaml.safe_dump(config, default_flow_style=False)


class K3sServer:  # pylint: disable=too-many-instance-attributes
    """
    The k3s server on this host.

    Args:
        port (int): the API server port
        k3s_args (list): extra arguments for ``k3s server``
        installer (str): URL of the installer script
        timeout (int): seconds to wait for the installer and for the token
        token_file (str): where k3s writes the node token
        kubeconfig_file (str): where k3s writes the admin kubeconfig
    """

    def __init__(self, port=DEFAULT_API_PORT, k3s_args=(),
                 installer=INSTALLER_URL, timeout=300,
                 token_file=TOKEN_FILE, kubeconfig_file=KUBECONFIG_FILE,
                 interval=2, sleep=time.sleep):
        self.port = port
        self.k3s_args = list(k3s_args)
        self.installer = installer
        self.timeout = timeout
        self.token_file = token_file
        self.kubeconfig_file = kubeconfig_file
        self.interval = interval
        self._sleep = sleep

    def server_args(self, endpoint):
        """the arguments passed to ``k3s server``"""
        args = ["--https-listen-port", str(self.port),
                "--tls-san", endpoint.host]
        if is_ip(endpoint.host):
            args += ["--node-external-ip", endpoint.host]
        return args + self.k3s_args

    def start(self, endpoint):
        """
        Install and start k3s, return once the token was written.

        Raises:
            StartupError if the installer fails or k3s does not come up
            within the timeout.
        """
        LOGGER.info("Starting k3s server for %s ...", endpoint.url)
        try:
            run_installer(self.installer, "server",
                          self.server_args(endpoint),
                          timeout=self.timeout)
        except InstallerError as exc:
            raise StartupError(str(exc))

        self._wait_for(self.token_file)
        self._wait_for(self.kubeconfig_file)

    def _wait_for(self, path):
        waited = 0
        while not os.path.exists(path):
            if waited >= self.timeout:
                raise StartupError(
                    f"k3s did not write {path} within {self.timeout}s")
            LOGGER.debug("Waiting for %s ...", path)
            self._sleep(self.interval)
            waited += self.interval

    def read_token(self):
        """return the node token written by k3s"""
        try:
            with open(self.token_file) as fh:
                return fh.read().strip()
        except OSError as exc:
            raise StartupError(f"unable to read node token: {exc}")

    def read_kubeconfig(self):
        """return the admin kubeconfig written by k3s"""
        try:
            with open(self.kubeconfig_file) as fh:
                return fh.read()
        except OSError as exc:
            raise StartupError(f"unable to read kubeconfig: {exc}")


class ControlPlaneInitializer:
    """
    Start the control plane and publish token and endpoint.

    Args:
        store (SharedTokenStore): where the artifacts are published
        server: an object with ``port``, ``start(endpoint)``,
            ``read_token()`` and ``read_kubeconfig()``, usually
            :class:`K3sServer`
        address (str): the public address, if empty it is resolved by
            calling ``resolver()``
        resolver: callable returning the public address
    """

    def __init__(self, store, server, address=None,
                 resolver=discover_public_address):
        self.store = store
        self.server = server
        self.address = address
        self.resolver = resolver
        self._lock = threading.Lock()
        self._initialized = False

    def endpoint(self):
        """determine the ClusterEndpoint of this instance"""
        address = self.address or self.resolver()
        try:
            return ClusterEndpoint(address, self.server.port)
        except ValueError as exc:
            raise StartupError(f"invalid control plane endpoint: {exc}")

    def initialize(self):
        """
        Start the cluster service and publish the join artifacts.

        Can only be called once per instance.

        Returns:
            tuple (token, ClusterEndpoint)

        Raises:
            StartupError if the service doesn't start or publishing fails.
        """
        with self._lock:
            if self._initialized:
                raise StartupError("control plane was already initialized")
            self._initialized = True

        endpoint = self.endpoint()
        self.server.start(endpoint)

        token = self.server.read_token()
        if not token:
            raise StartupError("k3s wrote an empty node token")

        try:
            kubeconfig = rewrite_kubeconfig(self.server.read_kubeconfig(),
                                            endpoint)
        except (ValueError, yaml.YAMLError) as exc:
            raise StartupError(f"invalid kubeconfig: {exc}")

        self.publish(token, kubeconfig, endpoint)
        LOGGER.success("Control plane %s is ready (token %s)", endpoint.url,
                       redact(token))
        return token, endpoint

    def publish(self, token, kubeconfig, endpoint):
        """write all artifacts, the ready marker last"""
        now = datetime.now(timezone.utc).isoformat()
        artifacts = [(NODE_TOKEN, token.encode()),
                     (KUBECONFIG, kubeconfig.encode()),
                     (ENDPOINT, str(endpoint).encode()),
                     (READY, now.encode())]
        for name, content in artifacts:
            try:
                self.store.put(name, content)
            except StoreError as exc:
                raise StartupError(f"unable to publish '{name}': {exc}")
            LOGGER.debug("Published '%s' to %s", name, self.store)
