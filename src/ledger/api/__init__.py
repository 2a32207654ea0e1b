from ledger.api.routes import ledger_router, register_ledger_exception_handlers

__all__ = ["ledger_router", "register_ledger_exception_handlers"]
