"""
This modules contains the cloud-init userdata which bootstraps the
cluster nodes.

The userdata is a MIME multipart document with a ``text/cloud-config``
part, writing the cluster configuration to the instance, and a shell
script calling ``k3sjoin init`` on the control plane or ``k3sjoin join``
on a worker.
"""
import base64
import textwrap
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import yaml

from k3sjoin import __version__
from k3sjoin.util.net import ClusterEndpoint


CONFIG_PATH = "/etc/k3sjoin/config.yml"
INFO_PATH = "/etc/k3sjoin/k3sjoin.conf"

BOOTSTRAP_SCRIPT = """\
#!/bin/bash
# bootstrap a k3sjoin {role}
set -eu
exec > >(tee -a /var/log/k3sjoin-bootstrap.log) 2>&1

if ! command -v k3sjoin >/dev/null 2>&1; then
    pip3 install {requirement}
fi

{command}
"""


class BaseInit:  # pylint: disable=unnecessary-lambda,no-member
    """
    Args:
       config (dict): the cluster configuration, written to the instance

    Attributes:
        cloud_config_data       this attribute contains the text/cloud-config
                                files that is passed to the instances
    """
    role = None

    def __init__(self, config, requirement="k3sjoin==%s" % __version__):
        self.config = config
        self.requirement = requirement

        self._cloud_config_data = {'write_files': []}

        self._write_k3sjoin_info()
        self._write_config()

    def write_file(self, path, content, owner="root", group="root",
                   permissions="0600", encoder=lambda x: base64.b64encode(x)):
        """
        writes a file to the instance
        path: e.g. /etc/k3sjoin/config.yml
        content: string of the content of the file
        owner: e.g. root
        group: e.g. root
        permissions: e.g. "0644", as string
        encode: Optional encoder to use for the needed base64 encoding
        """
        data = {
            "path": path,
            "owner": owner + ":" + group,
            "encoding": "b64",
            "permissions": permissions,
            "content": encoder(content.encode()).decode()
        }
        self._cloud_config_data['write_files'].append(data)

    def bootstrap_script(self):
        """
        the bootstrap script of the node's role as MIME attachment
        """
        name, script = self._get_bootstrap_script()
        part = MIMEText(script, _subtype='x-shellscript')
        part.add_header('Content-Disposition', 'attachment',
                        filename=name)
        return part

    def command(self):
        """the k3sjoin command run by the bootstrap script"""
        raise NotImplementedError

    def _get_bootstrap_script(self):
        name = "bootstrap-k3s-%s.sh" % self.role
        script = BOOTSTRAP_SCRIPT.format(role=self.role,
                                         requirement=self.requirement,
                                         command=self.command())
        return name, script

    def _write_k3sjoin_info(self):
        """
        Generate the k3sjoin.conf meta information file.
        """
        content = """
        # This file contains meta information about k3sjoin
        k3sjoin_version={}
        role={}
        creation_date={}
        """.format(
            __version__,
            self.role,
            datetime.strftime(datetime.now(), "%c"))
        content = textwrap.dedent(content)

        self.write_file(INFO_PATH, content, "root", "root", "0644")

    def _write_config(self):
        content = yaml.safe_dump(self.config, default_flow_style=False)
        self.write_file(CONFIG_PATH, content, "root", "root", "0600")

    def __str__(self):
        """
        This method generates a string from the cloud_config_data and the
        bootstrap script of the node's role.
        """
        userdata = MIMEMultipart()

        # first add the cloud-config-data script
        config = MIMEText(yaml.dump(self._cloud_config_data),
                          _subtype='cloud-config')
        config.add_header('Content-Disposition', 'attachment')
        userdata.attach(config)

        # then the bootstrap script of the role
        userdata.attach(self.bootstrap_script())

        return userdata.as_string()


class ControlPlaneInit(BaseInit):
    """
    Userdata of the control plane instance, which starts k3s and
    publishes the join artifacts.
    """
    role = 'control-plane'

    def command(self):
        return "k3sjoin --verbosity 4 init --config %s" % CONFIG_PATH


class WorkerInit(BaseInit):
    """
    Userdata of a (spot) worker instance.

    Args:
        config (dict): the cluster configuration
        endpoint (str): the control plane endpoint, if empty the worker
            reads the published one
    """
    role = 'worker'

    def __init__(self, config, endpoint=None, **kwargs):
        if endpoint:
            endpoint = str(ClusterEndpoint.parse(endpoint))
        self.endpoint = endpoint
        super().__init__(config, **kwargs)

    def command(self):
        cmd = "k3sjoin --verbosity 4 join --config %s" % CONFIG_PATH
        if self.endpoint:
            cmd += " --endpoint %s" % self.endpoint
        return cmd
