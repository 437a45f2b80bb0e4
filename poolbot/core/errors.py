"""Error taxonomy for the pool trading bot."""


class ConfigurationError(ValueError):
    """Pool, token pair, decimals or threshold configuration is invalid.

    Fatal for the current cycle. Raised at startup it stops the process.
    """


class UnavailableError(Exception):
    """Transient RPC or network failure while reading chain state."""


class SubmissionError(Exception):
    """An approval or swap transaction reverted or failed to confirm."""

    def __init__(self, message: str, tx_hash: str | None = None):
        self.tx_hash = tx_hash
        super().__init__(message)
