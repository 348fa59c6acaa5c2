"""
functions and classes to interact with openstack
"""
import sys

from openstack.exceptions import ResourceNotFound as OSNotFound
from openstack.exceptions import SDKException

from k3sjoin.cloud import OpenStackAPI
from k3sjoin.store import SharedTokenStore, StoreError, ArtifactNotFound
from k3sjoin.util.logger import Logger


LOGGER = Logger(__name__)


def get_connection():
    """Establishes an OpenStack connection.

    This function will exit with error code 1 in case a connection could not be
    established.

    Returns:
        conn (OpenStackAPI.Connection): an OpenStack Connection Object.
    """

    try:
        conn = OpenStackAPI.connect()
    except OpenStackAPI.exceptions.ConfigException as exc:
        LOGGER.error("unable to establish OpenStack Cloud connection:")
        LOGGER.error("%s - have you sourced your OpenStack RC file?", exc)
        sys.exit(1)

    if conn is None or conn.session is None:
        LOGGER.error("unable to establish OpenStack Cloud connection")
        sys.exit(1)

    return conn


class SwiftStore(SharedTokenStore):
    """
    Keep the cluster artifacts as objects in an OpenStack Swift container.

    Swift replaces objects as a whole and new objects are readable right
    after the upload returns.

    Args:
        conn: An OpenStack connection object.
        container (str): The name of the container.
    """

    def __init__(self, conn, container):
        self.conn = conn
        self.container = container
        self.identifier = container
        self._container_ready = False

    def ensure_container(self):
        """create the container unless it was already created"""
        if self._container_ready:
            return
        try:
            self.conn.object_store.create_container(name=self.container)
        except SDKException as exc:
            raise StoreError(
                f"could not create container '{self.container}': {exc}")
        LOGGER.debug("Container '%s' is available", self.container)
        self._container_ready = True

    def put(self, name, content):
        self.ensure_container()
        try:
            self.conn.object_store.upload_object(container=self.container,
                                                 name=name,
                                                 data=content)
        except SDKException as exc:
            raise StoreError(f"could not upload '{name}': {exc}")
        LOGGER.debug("Uploaded '%s' to container '%s'", name, self.container)

    def get(self, name):
        try:
            return self.conn.object_store.download_object(
                name, container=self.container)
        except OSNotFound:
            raise ArtifactNotFound(name)
        except SDKException as exc:
            raise StoreError(f"could not download '{name}': {exc}")

    def delete(self, name):
        try:
            self.conn.object_store.delete_object(name,
                                                 container=self.container,
                                                 ignore_missing=True)
        except SDKException as exc:
            raise StoreError(f"could not delete '{name}': {exc}")
        LOGGER.debug("Deleted '%s' from container '%s'", name,
                     self.container)

    def names(self):
        try:
            return sorted(obj.name for obj in
                          self.conn.object_store.objects(self.container))
        except OSNotFound:
            LOGGER.debug("Container '%s' doesn't exist", self.container)
            return []
        except SDKException as exc:
            raise StoreError(
                f"could not list container '{self.container}': {exc}")
