"""
Clients of the cloud the cluster runs in.
"""
import openstack as OpenStackAPI  # noqa pylint: disable=unused-import
