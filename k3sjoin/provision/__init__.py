"""
k3sjoin.provision
-----------------

Userdata for the cluster instances, see
:py:mod:`k3sjoin.provision.cloud_init`.

The control plane runs ``k3sjoin init``, which starts k3s and publishes
the join token, the kubeconfig and its endpoint. Workers run
``k3sjoin join``, which waits for the published token and joins.
"""
