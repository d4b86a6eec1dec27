"""ArcticFox HID version information."""

__version__ = "0.3.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Command framing, monitoring decode, pyusb transport
# 0.2.0 - Configuration read/write codec, version gate, screenshot to PNG
# 0.3.0 - Single-flight request tracking with reassembly deadline, busy
#         rejection, auto-reconnect, hidapi backend, JSON driver settings
