"""BaseService — shared foundation for crecto services.

Every service receives a :class:`Repo` at construction time and reports
through :class:`ServiceResult`; expected failures become ``ok=False``
results instead of exceptions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from crecto.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from crecto.infrastructure.repo import Repo


class BaseService:
    """Base for service-layer classes.

    Usage::

        class DatabaseService(BaseService):
            def check(self) -> ServiceResult:
                version = self._repo.server_version()
                ...
    """

    def __init__(self, repo: Repo) -> None:
        self._repo = repo

    @staticmethod
    def _failure(op: str, code: str, message: str, **detail: Any) -> ServiceResult:
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(code=code, message=message, detail=detail),
        )
