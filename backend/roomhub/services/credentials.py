from ..core.security import hash_password, verify_password


def make_secret(password: str | None) -> str | None:
    if not password:
        return None
    return hash_password(password)


def check_password(secret: str | None, candidate: str | None) -> bool:
    if secret is None:
        return True
    if not candidate:
        return False
    return verify_password(candidate, secret)
