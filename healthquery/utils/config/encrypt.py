import base64, logging

from cryptography.fernet import Fernet, InvalidToken

#-----------------------------------------------------------------------------

class AbstractEncrypter:
    def decrypt(self, s: str) -> str: ...
    def encrypt(self, s: str) -> str: ...
    def is_encrypted(self, s: str) -> bool: ...

#-----------------------------------------------------------------------------

def to_fernet_key(secret: str) -> str:
    """Derive a Fernet key from a free-form secret (padded/truncated to 32 bytes)."""

    s = secret.strip()
    if len(s) > 32:
        s = s[:32]

    return base64.urlsafe_b64encode(s.encode().ljust(32, b"0")).decode()

#-----------------------------------------------------------------------------

class FernetEncrypter(AbstractEncrypter):
    def __init__(self, key: str):
        self._key = key.strip()

        try:
            self._fernet = Fernet(self._key)
        except Exception as e:
            logging.error(str(e), exc_info=True)
            self._fernet = None

    #-----------------------------------------------------

    def decrypt(self, s: str) -> str:
        """Raises ValueError when the token was not produced with this key."""

        if not s or not self._fernet:
            return ""

        try:
            return self._fernet.decrypt(s.encode()).decode()

        except (InvalidToken, UnicodeError) as e:
            raise ValueError("invalid encrypted token") from e

    #-----------------------------------------------------

    def encrypt(self, s: str) -> str:
        if not s or not self._fernet:
            return ""

        return self._fernet.encrypt(s.encode()).decode()

    #-----------------------------------------------------

    def is_encrypted(self, s: str) -> bool:
        return s.startswith("gAAAA")

#-----------------------------------------------------------------------------
