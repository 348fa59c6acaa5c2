"""
k3sjoin
=======

The main entry point of the bootstrap protocol.
Don't use it directly, instead install the package with setup.py.
It automatically creates an executable in your path.

"""
import argparse
import sys

from mach import mach1

from . import __version__
from .cli import (get_store, teardown_hook, control_plane, worker_agent,
                  artifact_status, write_kubeconfig, show_nodes,
                  confirm)
from .controlplane import StartupError
from .provision.cloud_init import ControlPlaneInit, WorkerInit
from .store import StoreError, KUBECONFIG
from .teardown import TeardownError
from .util.logger import Logger, to_level
from .util.util import load_config, ConfigError
from .worker import TokenUnavailableError

LOGGER = Logger(__name__)

EXIT_TOKEN_UNAVAILABLE = 1
EXIT_JOIN_FAILED = 2


def read_config(path):
    """load the cluster configuration or exit"""
    try:
        return load_config(path)
    except (OSError, ConfigError) as exc:
        LOGGER.error(f"Error: {exc}")
        sys.exit(1)


@mach1()
class K3sJoin:  # pylint: disable=no-self-use
    """
    The main entry point for the program. This class does the CLI parsing
    and descides which action shoud be taken
    """
    def __init__(self):
        self.parser.add_argument(  # pylint: disable=no-member
            "--version", action="store_true",
            help="show version and exit",
            default=argparse.SUPPRESS)

        verbosity_help = "".join([
            "set the verbosity level (",
            "0 = quiet, ",
            "1 = error, ",
            "2 = warning, ",
            "3 = info, ",
            "4 = debug)"])
        self.parser.add_argument("--verbosity",  # pylint: disable=no-member
                                 "-v",
                                 help=verbosity_help,
                                 choices=['0', '1', '2', '3', '4', 'quiet',
                                          'error', 'warning', 'info', 'debug'],
                                 type=str,
                                 default=3)

    def _get_version(self):
        print("%s version: %s" % (self.__class__.__name__, __version__))

    def _get_verbosity(self):
        pass

    def init(self, config: str):
        """
        Start the control plane and publish the join token

        config - configuration file
        """
        config = read_config(config)
        store = get_store(config)

        try:
            _, endpoint = control_plane(config, store).initialize()
        except StartupError as err:
            LOGGER.error(f"Error: {err}")
            sys.exit(1)

        LOGGER.success("Workers can join at %s", endpoint.url)

    def join(self, config: str, endpoint: str = None, name: str = None):
        """
        Join this host to the cluster as a worker

        config - configuration file
        endpoint - the control plane, by default the published endpoint
        name - the node name, by default the host name
        """
        config = read_config(config)
        store = get_store(config)
        agent = worker_agent(config, node_name=name)

        try:
            result = agent.join(store, endpoint)
        except TokenUnavailableError:
            sys.exit(EXIT_TOKEN_UNAVAILABLE)

        if not result.ok:
            sys.exit(EXIT_JOIN_FAILED)

    def teardown(self, config: str, force: bool = False):
        """
        Delete all published artifacts of the cluster

        config - configuration file
        force - don't ask for confirmation
        """
        config = read_config(config)
        identifier = config['store']['identifier']

        LOGGER.question(
            "Deleting all artifacts of cluster '{}' from '{}'".format(
                config['cluster-name'], identifier))
        if confirm(force) != 'y':
            LOGGER.info("Aborted")
            sys.exit(0)

        try:
            teardown_hook(config).on_delete(identifier)
        except TeardownError as err:
            LOGGER.error(f"Error: {err}")
            sys.exit(1)

    def status(self, config: str, kubeconfig: bool = False):
        """
        Show which artifacts are published and the cluster nodes

        config - configuration file
        kubeconfig - write the published kubeconfig to the current directory
        """
        config = read_config(config)
        store = get_store(config)

        try:
            published = artifact_status(store)
        except StoreError as err:
            LOGGER.error(f"Error: {err}")
            sys.exit(1)

        for name, present in published.items():
            LOGGER.info("%-12s %s", name,
                        "published" if present else "missing")

        if not published[KUBECONFIG]:
            return

        if kubeconfig:
            write_kubeconfig(config['cluster-name'], store)

        if not show_nodes(store):
            sys.exit(1)

    def userdata(self, config: str, role: str = 'worker',
                 endpoint: str = None):
        """
        Print the cloud-init userdata for a node

        config - configuration file
        role - one of control-plane or worker
        endpoint - the control plane endpoint baked into worker userdata
        """
        config = read_config(config)
        if role == 'control-plane':
            print(ControlPlaneInit(config))
        elif role == 'worker':
            try:
                print(WorkerInit(config, endpoint=endpoint))
            except ValueError as err:
                LOGGER.error(f"Error: {err}")
                sys.exit(1)
        else:
            LOGGER.error("Error: role must be [control-plane | worker]")
            sys.exit(1)


def main():
    """
    run and execute k3sjoin
    """
    k = K3sJoin()

    # pylint: disable=no-member
    k.parser.description = 'Bootstrap a k3s cluster through a shared '\
                           'object store. With the swift backend an '\
                           'OpenStack RC file has to be sourced first.'

    level = k.parser.parse_args().verbosity
    try:
        LOGGER.level = to_level(level)
    except (ValueError, KeyError):
        LOGGER.error("Error: invalid verbosity %s", level)
        sys.exit(1)

    # the mach decorator analyzes the methods in the class and dynamically
    # creates the CLI parser. It also adds the method run to the class.
    k.run()  # pylint: disable=no-member
