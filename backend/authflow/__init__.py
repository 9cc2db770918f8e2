"""AuthFlow: account signup, verification, login and password reset service."""
