"""
General purpose utilities
"""
import copy
import re
import time

from functools import wraps

import yaml


DEFAULT_CONFIG = {
    'store': {
        'backend': 'swift',
        'identifier': '',
    },
    'control-plane': {
        'address': '',
        'port': 6443,
        'metadata-url': 'http://169.254.169.254/latest/meta-data/public-ipv4',
        'k3s-args': [],
    },
    'worker': {
        'retries': 5,
        'delay': 2,
        'backoff': 2,
        'max-delay': 30,
        'join-attempts': 1,
        'wait-for-ready': True,
        'verify': False,
        'verify-timeout': 120,
        'k3s-args': [],
    },
    'k3s': {
        'installer': 'https://get.k3s.io',
        'timeout': 300,
    },
}

STORE_BACKENDS = ('swift', 'file', 'memory')


class ConfigError(ValueError):
    """Raised if the cluster configuration is invalid"""


def name_validation(name):
    """
    Validates a cluster name.

    A name is at most 244 characters long and only contains ASCII-letters,
    numbers and dashes.

    Args:
        name (str): The name to be checked

    Returns:
        The name if valid.

    Raises:
        ConfigError if the name is invalid.
    """
    if not isinstance(name, str) or not name:
        raise ConfigError("cluster-name must be a non empty string")
    if len(name) > 244:
        raise ConfigError("cluster-name is too long")
    allowed = re.compile(r"^[a-zA-Z\d-]+$")
    if not allowed.match(name):
        raise ConfigError(
            "cluster-name '{}' is using illegal characters".format(name))
    return name


def merge(defaults, overrides):
    """recursively merge overrides into a copy of defaults"""
    result = copy.deepcopy(defaults)
    for key, val in (overrides or {}).items():
        if isinstance(val, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], val)
        else:
            result[key] = val
    return result


def validate_config(config):
    """
    Check a merged cluster configuration.

    Raises:
        ConfigError if a value is missing or invalid.
    """
    name_validation(config.get('cluster-name'))

    backend = config['store']['backend']
    if backend not in STORE_BACKENDS:
        raise ConfigError("store backend must be one of %s, not '%s'" % (
            " | ".join(STORE_BACKENDS), backend))

    worker = config['worker']
    for key in ('retries', 'join-attempts'):
        if not isinstance(worker[key], int) or worker[key] < 0:
            raise ConfigError(f"worker.{key} must be a positive integer")
    if worker['join-attempts'] < 1:
        raise ConfigError("worker.join-attempts must be at least 1")
    for key in ('delay', 'backoff', 'max-delay'):
        if not isinstance(worker[key], (int, float)) or worker[key] < 0:
            raise ConfigError(f"worker.{key} must be a positive number")

    if not isinstance(config['control-plane']['k3s-args'], list):
        raise ConfigError("control-plane.k3s-args must be a list")

    return config


def load_config(path):
    """
    Read a YAML cluster configuration and merge it over the defaults.

    If the store identifier is empty it defaults to
    ``<cluster-name>-k3s``.

    Args:
        path (str): path of the configuration file

    Returns:
        dict with the complete configuration
    """
    with open(path, 'r') as stream:
        raw = yaml.safe_load(stream)

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} does not contain a mapping")

    config = validate_config(merge(DEFAULT_CONFIG, raw))
    if not config['store']['identifier']:
        config['store']['identifier'] = '%s-k3s' % config['cluster-name']
    return config


def redact(secret, keep=4):
    """
    Return a printable form of a secret, e.g. ``K10a****``.
    """
    if not secret:
        return "<empty>"
    return secret[:keep] + "****"


def retry(exceptions, tries=4, delay=3, backoff=2, max_delay=None,
          logger=None, sleep=time.sleep):
    """
    Retry calling the decorated function using an exponential backoff.

    Args:
        exceptions: The exception to check. may be a tuple of exceptions to check.
        tries: Number of times to try (not retry) before giving up.
        delay: Initial delay between retries in seconds.
        backoff: Backoff multiplier (e.g. value of 2 will double the delay each retry).
        max_delay: Upper bound of a single delay, None for no bound.
        logger: Logger function to use. If None, nothing is logged.
        sleep: The function used to wait, ``time.sleep`` by default.
    """
    def deco_retry(f):  # pylint: disable=invalid-name

        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:  # pylint: disable=invalid-name
                    if max_delay is not None:
                        mdelay = min(mdelay, max_delay)
                    msg = '{}, Retrying in {} seconds...'.format(e, mdelay)
                    if logger:
                        logger(msg)
                    sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)

        return f_retry  # true decorator

    return deco_retry
