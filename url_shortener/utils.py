import re, random, string
from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits

SPECIAL_SCHEMES = ("http", "https", "ftp", "ws", "wss")
_C0_AND_SPACE = "".join(chr(i) for i in range(0x21))
_TAB_NEWLINE = str.maketrans("", "", "\t\n\r")
_FORBIDDEN_HOST = set(" <>^|")

def generate_shortcode(length: int = 6) -> str:
    return "".join(random.choices(ALPHABET, k=length))

_shortcode_re = re.compile(r"[A-Za-z0-9]{1,10}")
def is_valid_shortcode(s) -> bool:
    return isinstance(s, str) and _shortcode_re.fullmatch(s) is not None

_scheme_re = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*")
def is_valid_url(u) -> bool:
    if not isinstance(u, str):
        return False
    u = u.strip(_C0_AND_SPACE).translate(_TAB_NEWLINE)
    scheme, sep, rest = u.partition(":")
    if not sep or not _scheme_re.fullmatch(scheme):
        return False
    special = scheme.lower() in SPECIAL_SCHEMES
    if special:
        # any run of slashes or backslashes introduces the authority
        rest = "//" + rest.replace("\\", "/").lstrip("/")
    try:
        p = urlsplit(f"{scheme}:{rest}")
        host = p.netloc.rpartition("@")[2]
        if any(c in _FORBIDDEN_HOST for c in host):
            return False
        if special and not p.hostname:
            return False
        p.port  # raises ValueError on a malformed port
        return True
    except ValueError:
        return False

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def add_minutes(dt: datetime, m: float) -> datetime:
    return dt + timedelta(minutes=m)

def as_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc) if getattr(dt, "tzinfo", None) else dt.replace(tzinfo=timezone.utc)

def iso_z(dt: datetime) -> str:
    return as_utc(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")
