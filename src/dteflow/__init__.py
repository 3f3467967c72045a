"""dteflow - validation, workflow and tax ledger core for electronic tax documents."""

__version__ = "0.1.0"
