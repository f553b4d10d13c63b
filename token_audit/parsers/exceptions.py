class TokenAuditError(Exception):
    pass


class MalformedAccountError(TokenAuditError):
    """Mint account bytes shorter than the fixed layout."""


class AccountNotFoundError(TokenAuditError):
    pass


class CollaboratorUnavailableError(TokenAuditError):
    """Chain RPC or pool-metadata provider unreachable after retries."""


class MintDecodeFailed(TokenAuditError):
    """Audit aborted; carries the token, the stage reached and the cause."""

    def __init__(self, token: str, reason: str, stage: str = "decode_mint") -> None:
        super().__init__(f"{token}: {reason}")
        self.token = token
        self.reason = reason
        self.stage = stage
