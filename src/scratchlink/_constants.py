"""Internal constants shared across the library."""

#: Body returned by ``GET /``; the port guard compares probe responses against it.
SERVER_NAME = "scratch-link-server"

DEFAULT_HOST = "0.0.0.0"
LOOPBACK_HOST = "127.0.0.1"
DEFAULT_PORT = 20111

#: Seconds between bind attempts while another instance of this broker holds the port.
REOPEN_INTERVAL: float = 1.0

API_BASE_URL = "https://api.github.com"
USER_AGENT = "scratchlink"

# ------------------------------------------------------------------
# Release hosting
# ------------------------------------------------------------------

RELEASE_OWNER = "huintech"
MANIFEST_REPOSITORY = "scratch-arduino-link"
LIBRARIES_REPOSITORY = "scratch-arduino-libraries"
FIRMWARES_REPOSITORY = "scratch-arduino-firmwares"
TOOLS_REPOSITORY = "coconut-tools"

MANIFEST_NAME = "index.json"
LIBRARY_VERSION_FILE = "library-version.json"
FIRMWARE_VERSION_FILE = "firmware-version.json"

# ------------------------------------------------------------------
# Architecture naming used by release assets
# ------------------------------------------------------------------

ARCH_ALIASES: dict[str, str] = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
}
KNOWN_ARCHES: frozenset[str] = frozenset({"x64", "arm64", "arm", "ia32"})
