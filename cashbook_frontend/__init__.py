from .api_client import ApiError, CashbookClient, SessionExpired

__all__ = ["ApiError", "CashbookClient", "SessionExpired"]
