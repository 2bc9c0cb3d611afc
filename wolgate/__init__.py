"""wolgate: Wake-on-LAN gateway for libvirt virtual machines."""

__version__ = "0.1.0"
