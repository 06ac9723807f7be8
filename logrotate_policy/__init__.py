"""logrotate policy for the vbht logs."""

from logrotate_policy.policy import render_logrotate_config

__all__ = ["render_logrotate_config"]
