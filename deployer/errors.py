"""
Error taxonomy for deployment runs.

Resolver and manifest errors halt a run; wiring and verification errors are
collected per action and reported as a batch.
"""


class DeploymentError(Exception):
    """Base class for every error raised by the deployer"""


class ConfigurationError(DeploymentError):
    """Malformed or cyclic component descriptor set. Raised before any remote call."""


class PreflightError(DeploymentError):
    """The target network or deployer account failed a pre-flight check"""


class SubmissionError(DeploymentError):
    """The ledger rejected a transaction"""


class ConfirmationTimeout(DeploymentError):
    """No confirmation arrived within the configured bound"""

    def __init__(self, tx_hash: str, timeout: float):
        super().__init__(f"Transaction {tx_hash} not confirmed within {timeout}s")
        self.tx_hash = tx_hash
        self.timeout = timeout


class ManifestIOError(DeploymentError):
    """A manifest could not be persisted or parsed"""


class VerificationFailure(DeploymentError):
    """The verification service refused or could not verify a component"""
