"""ACPI button event forwarding for vbht."""

from sleep_forwarder.forwarder import EventForwarder, ForwardResult, forward_event, probe_daemon

__all__ = ["EventForwarder", "ForwardResult", "forward_event", "probe_daemon"]
