"""
talk to the cluster via the API server using the published kubeconfig
"""
import logging
import time

import urllib3
import yaml

from kubernetes import client as k8sclient
from kubernetes.client.rest import ApiException
from kubernetes.client import api_client
from kubernetes.client.configuration import Configuration
from kubernetes.config import kube_config

from k3sjoin.util.logger import Logger

LOGGER = Logger(__name__)


def _node_ready(node):
    """return the status of the Ready condition of a V1Node"""
    conditions = (node.status and node.status.conditions) or []
    status = [x.status for x in conditions if x.type == 'Ready']
    return status[0] if status else None


class K8S:
    """Class allowing various interactions with a Kubernets cluster.

    Args:
        kubeconfig (bytes or str): the content of the kubeconfig, as
            published by the control plane.
    """

    def __init__(self, kubeconfig):
        if isinstance(kubeconfig, bytes):
            kubeconfig = kubeconfig.decode()
        config_dict = yaml.safe_load(kubeconfig)
        configuration = Configuration()
        kube_config.load_kube_config_from_dict(
            config_dict, client_configuration=configuration)
        self.client = api_client.ApiClient(configuration=configuration)
        self.api = k8sclient.CoreV1Api(self.client)

    @property
    def host(self):
        """Retrieve the API server URL"""
        return self.client.configuration.host

    @property
    def is_ready(self):
        """Check if the API server is already available.

        Returns:
            True if it's reachable.
        """
        logging.getLogger("urllib3").setLevel(logging.ERROR)
        try:
            k8sclient.CoreApi(self.client).get_api_versions()
            return True
        except (urllib3.exceptions.HTTPError, ApiException):
            return False
        finally:
            logging.getLogger("urllib3").setLevel(logging.WARNING)

    def nodes(self):
        """Returns a dict mapping node names to their Ready status."""
        resp = self.api.list_node()
        return {node.metadata.name: _node_ready(node) for node in resp.items}

    def node_status(self, nodename):
        """Returns the status of a Node.

        Args:
            nodename (str): The name of the node to check.

        Returns:
            The Ready status of the node as string ("True", "False",
            "Unknown") or None if the node can't be read.
        """

        try:
            resp = self.api.read_node_status(nodename)
            LOGGER.debug("API Response: %s", resp)
        except (ApiException, urllib3.exceptions.HTTPError) as exc:
            LOGGER.debug("API exception: %s", exc)
            return None

        return _node_ready(resp)

    def wait_for_node(self, nodename, timeout=120, interval=5,
                      sleep=time.sleep):
        """Wait until a node reports Ready.

        Returns:
            True if the node became ready within timeout seconds.
        """
        waited = 0
        while True:
            if self.node_status(nodename) == "True":
                return True
            if waited >= timeout:
                return False
            LOGGER.debug("Node %s not ready yet, waiting ...", nodename)
            sleep(interval)
            waited += interval
