"""IP pools, address allocation, pool selection and kube-vip pool conversion for VM load balancers."""

__version__ = "0.1.0"