from authflow.models.account import Account, VerificationState, ResetFlowState

__all__ = [
    "Account",
    "VerificationState",
    "ResetFlowState",
]
