"""Software KVM components: client registry, event protocol, frontend IPC, CLI and clipboard sync."""

__version__ = "0.10.0"