"""Rule dependency graphs for web-ACL and load-balancer listener rules."""

__version__ = "0.1.0"
