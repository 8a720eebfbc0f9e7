"""Protocol constants, daemon states and exit codes.

The command token spellings are a contract with peer instances on the
ship network and must not change.
"""

# Sentence framing
XOR_SENTINEL: str = "$"
AIS_SENTINEL: str = "!"
CHECKSUM_DELIMITER: str = "*"
FIELD_DELIMITERS: str = ",* "
LCI_MODULUS: int = 10000

# In-band command tokens
CMD_SET_DATASET: str = "$BDCID"
CMD_SET_LOGGING: str = "$BDLOG"
CMD_SET_DISPLAY: str = "$BDDSP"
CMD_REBOOT: str = "$BDRBT"
CMD_SHUTDOWN: str = "$BDSHD"
CMD_STATUS: str = "$BDSTA"
STATUS_REPLY: str = "BDACK"

BROADCAST_TARGET: str = "ALL"
DISPLAY_NONE: str = "NONE"
LOGGING: str = "LOGGING"
NOT_LOGGING: str = "NOTLOGGING"

# Data sentences
AIS_TOKENS: tuple[str, ...] = ("!AIVDM", "!AIVDO")
LCI_TOKEN_PATTERN: str = r"^\d{2}RD$"
TIDE_LEVEL_PATTERN: str = r"^[-+]?\d"
TIDE_NO_RESPONSE: str = "NORESPONSE"
TIDE_NO_RESPONSE_VALUE: float = -9999.999

EMPTY_FIELD: str = "-"

# Dataset, stream and winch names become directory and file names
PATH_COMPONENT_PATTERN: str = r"^(?!\.+$)[A-Za-z0-9._-]+$"

# Serial line presets: (bytesize, parity, stopbits)
SERIAL_FORMATS: dict[str, tuple[int, str, int]] = {
    "8N1": (8, "N", 1),
    "7N1": (7, "N", 1),
    "7N2": (7, "N", 2),
    "7E1": (7, "E", 1),
    "7E2": (7, "E", 2),
    "7O1": (7, "O", 1),
    "7O2": (7, "O", 2),
}
DEFAULT_SERIAL_FORMAT: str = "8N1"

# Timing
PRESENCE_INTERVAL: float = 1.0
READ_TIMEOUT: float = 1.0
IDLE_TIMEOUT: float = 60.0
READY_POLLS: int = 1000
READY_POLL_INTERVAL: float = 0.001
SWEEP_INTERVAL: float = 5.0
TIDE_GRACE: float = 0.2

MAX_LINE: int = 4096

# Process exit codes
EXIT_CLEAN: int = 0
EXIT_SOURCE_CONFIG: int = 2
EXIT_INIT_FAILED: int = 3
