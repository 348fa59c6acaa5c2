"""
worker
======

Join a worker node to the cluster.

The worker reads the join token from the shared store, retrying with an
exponential backoff while the control plane is not ready yet, and runs the
k3s agent installer against the control plane endpoint.

A failed join does not raise: the agent ends in ``JoinFailed`` and the
error is kept in its :class:`JoinResult`, which can be polled, waited for
or subscribed to.
"""
import enum
import socket
import threading
import time

from k3sjoin.deploy.k8s import K8S
from k3sjoin.k3s import run_installer, InstallerError, INSTALLER_URL
from k3sjoin.store import (NODE_TOKEN, KUBECONFIG, ENDPOINT, READY,
                           ArtifactNotFound, StoreError)
from k3sjoin.util.logger import Logger
from k3sjoin.util.net import ClusterEndpoint
from k3sjoin.util.util import retry, redact

LOGGER = Logger(__name__)


class JoinState(enum.Enum):
    """The states of a :class:`WorkerJoinAgent`"""
    IDLE = "Idle"
    FETCHING_TOKEN = "FetchingToken"
    TOKEN_FETCHED = "TokenFetched"
    JOINING = "Joining"
    JOINED = "Joined"
    JOIN_FAILED = "JoinFailed"
    TOKEN_UNAVAILABLE = "TokenUnavailable"

    @property
    def terminal(self):
        return self in (JoinState.JOINED, JoinState.JOIN_FAILED,
                        JoinState.TOKEN_UNAVAILABLE)


class TokenUnavailableError(Exception):
    """Raised if the join token could not be fetched after all retries"""

    def __init__(self, msg, attempts=0):
        super().__init__(msg)
        self.attempts = attempts


class JoinError(Exception):
    """Raised if the worker could not join the control plane"""


class JoinResult:  # pylint: disable=too-few-public-methods
    """
    A snapshot of the progress of a worker.

    Attributes:
        state (JoinState): the current state
        endpoint (ClusterEndpoint): the endpoint joined, once known
        error (Exception): the error of a failed run
        attempts (int): the number of token fetch attempts
    """

    def __init__(self, state=JoinState.IDLE, endpoint=None, error=None,
                 attempts=0):
        self.state = state
        self.endpoint = endpoint
        self.error = error
        self.attempts = attempts

    @property
    def ok(self):
        """True once the worker joined"""
        return self.state is JoinState.JOINED

    @property
    def retryable(self):
        """a failed join may succeed when run again"""
        return self.state is JoinState.JOIN_FAILED

    def replace(self, **changes):
        """return a copy with some attributes changed"""
        values = dict(state=self.state, endpoint=self.endpoint,
                      error=self.error, attempts=self.attempts)
        values.update(changes)
        return JoinResult(**values)

    def __repr__(self):
        return "<JoinResult %s endpoint=%s attempts=%d error=%r>" % (
            self.state.value, self.endpoint, self.attempts, self.error)


class K3sAgent:
    """
    Join this host with the k3s agent installer.

    The token is handed to the installer in ``K3S_TOKEN``, so it never
    shows up in a process listing or in the logs.

    Args:
        k3s_args (list): extra arguments for ``k3s agent``
        installer (str): URL of the installer script
        timeout (int): seconds to wait for the installer
        node_name (str): the name of the node, the host name by default
    """

    def __init__(self, k3s_args=(), installer=INSTALLER_URL, timeout=300,
                 node_name=None):
        self.k3s_args = list(k3s_args)
        self.installer = installer
        self.timeout = timeout
        self.node_name = node_name or socket.gethostname()

    def join(self, endpoint, token):
        """
        Raises:
            JoinError if the installer fails.
        """
        env = {"K3S_URL": endpoint.url,
               "K3S_TOKEN": token}
        args = ["--node-name", self.node_name] + self.k3s_args
        try:
            run_installer(self.installer, "agent", args, env=env,
                          timeout=self.timeout)
        except InstallerError as exc:
            raise JoinError(str(exc))


class WorkerJoinAgent:  # pylint: disable=too-many-instance-attributes
    """
    Fetch the join token and join the cluster.

    Args:
        agent: an object with ``join(endpoint, token)`` raising
            :class:`JoinError`, usually :class:`K3sAgent`
        retries (int): how often a missing token is fetched again
        delay (float): seconds before the first retry
        backoff (float): multiplier applied to the delay after each retry
        max_delay (float): upper bound of a single delay
        join_attempts (int): how often the join is tried
        wait_for_ready (bool): only take the token once the control plane
            published its ready marker
        verify_node (str): if given, wait until this node is Ready in the
            Kubernetes API before reporting ``Joined``
        verify_timeout (int): seconds to wait for the node
        sleep: the function used to wait between retries
    """

    def __init__(self, agent, retries=5, delay=2, backoff=2, max_delay=30,
                 join_attempts=1, wait_for_ready=True, verify_node=None,
                 verify_timeout=120, sleep=time.sleep):
        self.agent = agent
        self.retries = retries
        self.delay = delay
        self.backoff = backoff
        self.max_delay = max_delay
        self.join_attempts = join_attempts
        self.wait_for_ready = wait_for_ready
        self.verify_node = verify_node
        self.verify_timeout = verify_timeout
        self._sleep = sleep

        self._lock = threading.Lock()
        self._started = False
        self._done = threading.Event()
        self._listeners = []
        self._result = JoinResult()

    @property
    def result(self):
        """the current :class:`JoinResult`"""
        with self._lock:
            return self._result

    @property
    def state(self):
        return self.result.state

    def subscribe(self, callback):
        """call callback(JoinResult) on every state change"""
        with self._lock:
            self._listeners.append(callback)

    def wait(self, timeout=None):
        """
        Block until the agent reached a terminal state.

        Returns:
            the :class:`JoinResult`, or None on timeout
        """
        if not self._done.wait(timeout):
            return None
        return self.result

    def _set(self, state, **changes):
        with self._lock:
            self._result = self._result.replace(state=state, **changes)
            result = self._result
            listeners = list(self._listeners)

        LOGGER.debug("Worker state: %s", state.value)
        for callback in listeners:
            try:
                callback(result)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error("Subscriber %r failed: %s", callback, exc)
        if state.terminal:
            self._done.set()

    def _fetch_once(self, store):
        attempts = self.result.attempts + 1
        self._set(JoinState.FETCHING_TOKEN, attempts=attempts)
        if self.wait_for_ready:
            store.get(READY)
        try:
            token = store.get(NODE_TOKEN).decode().strip()
        except UnicodeDecodeError:
            LOGGER.warning("The published join token is not valid UTF-8")
            raise ArtifactNotFound(NODE_TOKEN)
        if not token:
            raise ArtifactNotFound(NODE_TOKEN)
        return token

    def fetch_token(self, store):
        """
        Read the join token, retrying while it's missing.

        Returns:
            the token (str)

        Raises:
            TokenUnavailableError after ``retries`` retries.
        """
        fetch = retry((ArtifactNotFound, StoreError),
                      tries=self.retries + 1,
                      delay=self.delay,
                      backoff=self.backoff,
                      max_delay=self.max_delay,
                      logger=LOGGER.info,
                      sleep=self._sleep)(self._fetch_once)
        try:
            token = fetch(store)
        except (ArtifactNotFound, StoreError) as exc:
            attempts = self.result.attempts
            err = TokenUnavailableError(
                "join token unavailable after %d attempts: %s" % (attempts,
                                                                 exc),
                attempts=attempts)
            LOGGER.error("%s", err)
            self._set(JoinState.TOKEN_UNAVAILABLE, error=err)
            raise err

        LOGGER.debug("Fetched join token %s", redact(token))
        self._set(JoinState.TOKEN_FETCHED)
        return token

    @staticmethod
    def _endpoint(store, endpoint):
        if isinstance(endpoint, ClusterEndpoint):
            return endpoint
        try:
            if endpoint is None:
                endpoint = store.get(ENDPOINT)
            return ClusterEndpoint.parse(endpoint)
        except (ArtifactNotFound, StoreError) as exc:
            raise JoinError(f"no control plane endpoint: {exc}")
        except ValueError as exc:
            raise JoinError(f"invalid control plane endpoint: {exc}")

    def _join_once(self, store, endpoint, token):
        self.agent.join(endpoint, token)
        if not self.verify_node:
            return

        try:
            k8s = K8S(store.get(KUBECONFIG))
        except (ArtifactNotFound, StoreError) as exc:
            raise JoinError(f"can't verify node: {exc}")
        if not k8s.wait_for_node(self.verify_node,
                                 timeout=self.verify_timeout,
                                 sleep=self._sleep):
            raise JoinError("node %s not Ready after %ss" % (
                self.verify_node, self.verify_timeout))

    def join(self, store, endpoint=None):
        """
        Fetch the token and join the control plane at endpoint.

        Args:
            store (SharedTokenStore): where the control plane publishes
            endpoint (ClusterEndpoint or str): the control plane, if None
                the published endpoint is used

        Returns:
            :class:`JoinResult` in state ``Joined`` or ``JoinFailed``.
            Unexpected errors of the agent or the node verification end in
            ``JoinFailed`` as well.

        Raises:
            TokenUnavailableError if the token could not be fetched.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("a WorkerJoinAgent can only join once")
            self._started = True

        try:
            token = self.fetch_token(store)
            endpoint = self._endpoint(store, endpoint)
            self._set(JoinState.JOINING, endpoint=endpoint)
            LOGGER.info("Joining %s ...", endpoint.url)
            join = retry(JoinError,
                         tries=self.join_attempts,
                         delay=self.delay,
                         backoff=self.backoff,
                         max_delay=self.max_delay,
                         logger=LOGGER.warning,
                         sleep=self._sleep)(self._join_once)
            join(store, endpoint, token)
        except TokenUnavailableError:
            raise
        except JoinError as exc:
            LOGGER.error("Joining the cluster failed: %s", exc)
            self._set(JoinState.JOIN_FAILED, error=exc)
            return self.result
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error("Joining the cluster failed unexpectedly: %r", exc)
            self._set(JoinState.JOIN_FAILED, error=exc)
            return self.result

        LOGGER.success("Joined the cluster at %s", endpoint.url)
        self._set(JoinState.JOINED)
        return self.result

    def _run(self, store, endpoint):
        try:
            self.join(store, endpoint)
        except TokenUnavailableError:
            # already logged and recorded in the result
            return
        except RuntimeError as exc:
            LOGGER.error("%s", exc)

    def join_in_background(self, store, endpoint=None):
        """
        Run :meth:`join` in a daemon thread.

        Progress is visible via :attr:`result`, :meth:`wait` and
        :meth:`subscribe`.

        Returns:
            the started thread
        """
        thread = threading.Thread(target=self._run, args=(store, endpoint),
                                  name="k3sjoin-worker", daemon=True)
        thread.start()
        return thread
