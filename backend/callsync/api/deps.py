"""Shared service instances for the routers (overridable in tests via dependency_overrides)."""
from functools import lru_cache

from fastapi import Depends

from ..services.calendar_client import CalendarClient
from ..services.token_vault import TokenVault


@lru_cache(maxsize=1)
def get_token_vault() -> TokenVault:
    return TokenVault()


def get_calendar_client(vault: TokenVault = Depends(get_token_vault)) -> CalendarClient:
    return CalendarClient(vault)
