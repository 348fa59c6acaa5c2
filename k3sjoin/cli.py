"""
cli.py
======

misc functions to wire the protocol parts from a cluster configuration,
usually called from ``k3sjoin.k3sjoin.K3sJoin``.

Don't use directly
"""
import functools
import os

import urllib3
import yaml
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from k3sjoin.cloud.openstack import get_connection, SwiftStore
from k3sjoin.controlplane import (ControlPlaneInitializer, K3sServer,
                                  discover_public_address)
from k3sjoin.deploy.k8s import K8S
from k3sjoin.store import (MemoryStore, FileStore, ARTIFACT_NAMES,
                           KUBECONFIG, ArtifactNotFound, StoreError)
from k3sjoin.teardown import TeardownHook
from k3sjoin.worker import WorkerJoinAgent, K3sAgent
from .util.hue import que, bold
from .util.logger import Logger


LOGGER = Logger(__name__)


def confirm(force):
    """Asks the user for confirmation."""
    if not force:
        ans = input(que(bold("Are you sure? [y/N]: ")))
    else:
        ans = 'y'

    return ans.lower()


def open_store(backend, identifier):
    """
    Return the store of a backend.

    Args:
        backend (str): ``swift``, ``file`` or ``memory``
        identifier (str): container name, directory or registry key
    """
    if backend == 'swift':
        return SwiftStore(get_connection(), identifier)
    if backend == 'file':
        return FileStore(identifier)
    if backend == 'memory':
        return MemoryStore.open(identifier)
    raise ValueError(f"unknown store backend '{backend}'")


def get_store(config):
    """the store configured in the cluster configuration"""
    return open_store(config['store']['backend'],
                      config['store']['identifier'])


def teardown_hook(config):
    """a TeardownHook for the configured backend"""
    return TeardownHook(functools.partial(open_store,
                                          config['store']['backend']))


def control_plane(config, store):
    """build the ControlPlaneInitializer from the configuration"""
    plane = config['control-plane']
    server = K3sServer(port=plane['port'],
                       k3s_args=plane['k3s-args'],
                       installer=config['k3s']['installer'],
                       timeout=config['k3s']['timeout'])
    resolver = functools.partial(discover_public_address,
                                 plane['metadata-url'])
    return ControlPlaneInitializer(store, server,
                                   address=plane['address'] or None,
                                   resolver=resolver)


def worker_agent(config, node_name=None):
    """build the WorkerJoinAgent from the configuration"""
    worker = config['worker']
    agent = K3sAgent(k3s_args=worker['k3s-args'],
                     installer=config['k3s']['installer'],
                     timeout=config['k3s']['timeout'],
                     node_name=node_name)
    return WorkerJoinAgent(agent,
                           retries=worker['retries'],
                           delay=worker['delay'],
                           backoff=worker['backoff'],
                           max_delay=worker['max-delay'],
                           join_attempts=worker['join-attempts'],
                           wait_for_ready=worker['wait-for-ready'],
                           verify_node=(agent.node_name if worker['verify']
                                        else None),
                           verify_timeout=worker['verify-timeout'])


def artifact_status(store):
    """Map every known artifact name to whether it is published."""
    return {name: store.exists(name) for name in ARTIFACT_NAMES}


def write_kubeconfig(cluster_name, store, directory="."):
    """Write the published kubeconfig to the filesystem"""

    path = os.path.join(directory, '-'.join((cluster_name, 'k3s.yaml')))
    content = store.get(KUBECONFIG)
    with open(path, "wb") as fh:
        fh.write(content)
    os.chmod(path, 0o600)

    LOGGER.success("You can use your config with:")
    LOGGER.success("kubectl get nodes --kubeconfig=%s" % path)
    return path


def show_nodes(store):
    """
    Log the nodes of the cluster and whether they are Ready.

    Returns:
        False if the published kubeconfig can't be read or used, or the
        API server rejects the request. True otherwise, also when the API
        server is not reachable yet.
    """
    try:
        k8s = K8S(store.get(KUBECONFIG))
        if not k8s.is_ready:
            LOGGER.warning("API server %s is not reachable", k8s.host)
            return True
        nodes = k8s.nodes()
    except (ArtifactNotFound, StoreError, ConfigException,
            yaml.YAMLError) as err:
        LOGGER.error(f"Error: can't use the published kubeconfig: {err}")
        return False
    except (ApiException, urllib3.exceptions.HTTPError) as err:
        LOGGER.error(f"Error: listing the nodes failed: {err}")
        return False

    for node, ready in sorted(nodes.items()):
        LOGGER.info("node %s Ready=%s", node, ready)
    return True
