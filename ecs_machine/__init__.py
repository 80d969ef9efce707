"""Single-machine provisioning on Alibaba Cloud ECS."""

__version__ = "0.1.0"
