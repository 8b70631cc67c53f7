"""Shopledger: daily cash, bank and card balance ledger for a retail shop."""


# Import main lazily to avoid circular dependencies
def __getattr__(name):
    if name == "main":
        from shopledger.cli.main import main
        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
