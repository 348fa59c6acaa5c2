"""
store
=====

The shared blob store used as rendezvous point between the control plane
and the workers.

The control plane is the only writer, workers only read. Every backend
must replace whole objects atomically, so a reader either sees the
complete old object, the complete new one, or nothing.
"""
import contextlib
import os
import tempfile
import threading
from datetime import datetime, timezone

from k3sjoin.util.logger import Logger

LOGGER = Logger(__name__)

NODE_TOKEN = "node-token"
KUBECONFIG = "k3s.yaml"
ENDPOINT = "endpoint"
READY = "ready"

ARTIFACT_NAMES = (NODE_TOKEN, KUBECONFIG, ENDPOINT, READY)


class StoreError(Exception):
    """Raised if a store operation fails.

    Attributes:
        failed (dict): name -> exception for partial failures of a sweep.
    """

    def __init__(self, msg, failed=None):
        super().__init__(msg)
        self.failed = failed or {}


class ArtifactNotFound(KeyError):
    """Raised if a named object does not exist in the store"""

    def __str__(self):
        return "artifact '%s' not found" % self.args[0]


class PublishedArtifact:  # pylint: disable=too-few-public-methods
    """A named blob together with its creation time"""

    def __init__(self, name, content, created=None):
        if not isinstance(content, bytes):
            raise TypeError("artifact content must be bytes")
        self.name = name
        self.content = content
        self.created = created or datetime.now(timezone.utc)

    def __repr__(self):
        return "<PublishedArtifact %s (%d bytes, %s)>" % (
            self.name, len(self.content), self.created.isoformat())


class SharedTokenStore:
    """
    Interface of a blob store.

    Subclasses implement ``put``, ``get``, ``delete`` and ``names``,
    ``delete_all`` is built on top of them.
    """

    identifier = None

    def put(self, name, content):
        """store content (bytes) under name, replacing an existing object"""
        raise NotImplementedError

    def get(self, name):
        """
        Return the content stored under name.

        Raises:
            ArtifactNotFound if no such object exists.
        """
        raise NotImplementedError

    def delete(self, name):
        """delete the object name, deleting a missing object is a no-op"""
        raise NotImplementedError

    def names(self):
        """return the names of all stored objects"""
        raise NotImplementedError

    def exists(self, name):
        """check whether name is stored"""
        try:
            self.get(name)
        except ArtifactNotFound:
            return False
        return True

    def delete_all(self):
        """
        Delete every object in the store.

        Every object is attempted even if some deletes fail.

        Returns:
            list of deleted names

        Raises:
            StoreError after the sweep if at least one delete failed, the
            ``failed`` attribute maps the names to their errors.
        """
        deleted, failed = [], {}
        for name in self.names():
            try:
                self.delete(name)
            except StoreError as exc:
                LOGGER.warning("Could not delete '%s': %s", name, exc)
                failed[name] = exc
            else:
                deleted.append(name)

        if failed:
            raise StoreError("failed to delete %s" % ", ".join(sorted(failed)),
                             failed=failed)
        return deleted

    def __repr__(self):
        return "<%s %s>" % (self.__class__.__name__, self.identifier)


class MemoryStore(SharedTokenStore):
    """
    A process local store.

    Instances are registered by identifier, so the same identifier always
    refers to the same store within a process (see :meth:`open`).
    """

    _registry = {}
    _registry_lock = threading.Lock()

    def __init__(self, identifier="memory"):
        self.identifier = identifier
        self._objects = {}
        self._lock = threading.Lock()

    @classmethod
    def open(cls, identifier):
        """return the store registered for identifier, create if needed"""
        with cls._registry_lock:
            if identifier not in cls._registry:
                cls._registry[identifier] = cls(identifier)
            return cls._registry[identifier]

    @classmethod
    def forget(cls, identifier):
        """drop a registered store"""
        with cls._registry_lock:
            cls._registry.pop(identifier, None)

    def put(self, name, content):
        artifact = PublishedArtifact(name, bytes(content))
        with self._lock:
            self._objects[name] = artifact

    def get(self, name):
        return self.artifact(name).content

    def artifact(self, name):
        """return the :class:`PublishedArtifact` stored under name"""
        with self._lock:
            try:
                return self._objects[name]
            except KeyError:
                raise ArtifactNotFound(name)

    def delete(self, name):
        with self._lock:
            self._objects.pop(name, None)

    def names(self):
        with self._lock:
            return sorted(self._objects)


class FileStore(SharedTokenStore):
    """
    A store keeping one file per object in a directory.

    Writes go to a temporary file in the same directory which is renamed
    over the target, which is atomic on POSIX file systems.

    Args:
        path (str): the directory, created on first write
    """

    def __init__(self, path):
        self.identifier = path
        self.path = path

    def _file(self, name):
        if not name or os.sep in name or name.startswith('.'):
            raise StoreError(f"invalid object name '{name}'")
        return os.path.join(self.path, name)

    def put(self, name, content):
        target = self._file(name)
        tmp = None
        try:
            os.makedirs(self.path, mode=0o700, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path, prefix=".tmp-")
            with os.fdopen(fd, 'wb') as fh:
                fh.write(content)
            os.replace(tmp, target)
            tmp = None
        except OSError as exc:
            raise StoreError(f"could not write '{name}': {exc}")
        finally:
            # names() hides the temporary file, teardown would miss it
            if tmp is not None:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp)

    def get(self, name):
        try:
            with open(self._file(name), 'rb') as fh:
                return fh.read()
        except FileNotFoundError:
            raise ArtifactNotFound(name)
        except OSError as exc:
            raise StoreError(f"could not read '{name}': {exc}")

    def delete(self, name):
        try:
            os.remove(self._file(name))
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StoreError(f"could not delete '{name}': {exc}")

    def names(self):
        try:
            entries = os.listdir(self.path)
        except FileNotFoundError:
            return []
        return sorted(e for e in entries if not e.startswith('.'))
