"""ufbright version information."""

__version__ = "0.3.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Interactive arrow-key control for the 27MD5KL over hidapi
# 0.2.0 - Model profiles (24MD4KL, 27MD5KA), get/set/detect commands,
#         read/write errors reported instead of ignored
# 0.3.0 - pyusb backend, ID-only matching, config file, setup-udev
