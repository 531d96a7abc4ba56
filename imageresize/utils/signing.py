import hashlib
import hmac
from urllib.parse import unquote

from imageresize.config import logger
from imageresize.errors import InvalidSignature

IDENTIFIER_LENGTH = 40


class IdentifierSigner:
    """HMAC-SHA1 identifiers keyed on the process secret."""

    def __init__(self, secret_key: str):
        if not secret_key:
            raise ValueError("A secret key is required to sign identifiers")
        self._key = secret_key.encode("utf-8")

    def sign(self, message: str) -> str:
        return hmac.new(self._key, message.encode("utf-8"), hashlib.sha1).hexdigest()

    @staticmethod
    def is_valid_identifier(identifier: object) -> bool:
        return (
            isinstance(identifier, str)
            and len(identifier) == IDENTIFIER_LENGTH
            and identifier.isascii()
            and identifier.isalnum()
        )

    def validate(self, identifier: str, encoded_message: str) -> str:
        """Return the decoded message if ``identifier`` is its signature.

        Slashes may arrive double encoded when a router in front of us
        re-encodes them, so a second decoding pass is tried as well.
        """
        if self.is_valid_identifier(identifier):
            decoded = unquote(encoded_message)
            candidates = [decoded]
            if "%" in decoded:
                candidates.append(unquote(decoded))
            for message in candidates:
                if hmac.compare_digest(self.sign(message), identifier):
                    return message

        logger.debug("Rejected resize identifier %r", identifier)
        raise InvalidSignature()
