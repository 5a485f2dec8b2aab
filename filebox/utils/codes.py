import re
import secrets
import string

CODE_ALPHABET = string.ascii_letters + string.digits
CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{6,16}$")


def generate_share_code(length: int) -> str:
    """Generate a random alphanumeric share code"""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def is_valid_share_code(code: str) -> bool:
    """Check a user-chosen share code: 6 to 16 letters or digits"""
    return bool(CODE_PATTERN.match(code))
