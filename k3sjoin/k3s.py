"""
Run the upstream k3s installer on the local host.

The installer is downloaded and piped into a shell, the same way the
documented one-liner ``curl -sfL https://get.k3s.io | sh -`` does. It
installs k3s as a systemd unit and returns once the unit was started.
"""
import os
import shlex
import subprocess as sp

from k3sjoin.util.logger import Logger

LOGGER = Logger(__name__)

INSTALLER_URL = "https://get.k3s.io"
TOKEN_FILE = "/var/lib/rancher/k3s/server/node-token"
KUBECONFIG_FILE = "/etc/rancher/k3s/k3s.yaml"


class InstallerError(Exception):
    """Raised if the k3s installer fails"""


def installer_command(installer, mode, args=()):
    """
    Build the shell pipeline running the installer.

    Args:
        installer (str): URL of the installer script
        mode (str): ``server`` or ``agent``
        args (list): extra arguments for k3s

    Returns:
        list suitable for subprocess
    """
    k3s_args = " ".join(shlex.quote(str(a)) for a in [mode] + list(args))
    pipeline = "curl -sfL %s | sh -s - %s" % (shlex.quote(installer),
                                              k3s_args)
    return ["sh", "-c", pipeline]


def run_installer(installer, mode, args=(), env=None, timeout=300):
    """
    Execute the installer and wait for it.

    Secrets must be passed in ``env``, never in ``args``, the command line
    is logged.

    Raises:
        InstallerError if the installer can't be run, times out or exits
        with a non zero status.
    """
    cmd = installer_command(installer, mode, args)
    LOGGER.debug("Running: %s", " ".join(cmd))
    full_env = dict(os.environ)
    full_env.update(env or {})
    try:
        proc = sp.run(cmd,
                      check=True,
                      encoding="utf-8",
                      stdout=sp.PIPE,
                      stderr=sp.PIPE,
                      env=full_env,
                      timeout=timeout)
    except sp.CalledProcessError as exc:
        raise InstallerError("k3s %s installer exited with %d: %s" % (
            mode, exc.returncode, (exc.stderr or "").strip()))
    except sp.TimeoutExpired:
        raise InstallerError("k3s %s installer timed out after %ss" % (
            mode, timeout))
    except OSError as exc:
        raise InstallerError("unable to run k3s installer: %s" % exc)

    LOGGER.debug("STDOUT: %s (Exit code %s)", proc.stdout, proc.returncode)
    return proc
