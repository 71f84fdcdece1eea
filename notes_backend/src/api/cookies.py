from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response

from src.api.config import Settings


@dataclass(frozen=True)
class SessionCookiePolicy:
    """
    Single owner of the session cookie attributes, used for both set and clear.

    Cross-site deployments (frontend on another origin) need Secure with
    SameSite=None; same-host development over plain HTTP gets SameSite=Strict.
    """
    name: str
    max_age: int
    secure: bool
    samesite: str
    path: str = "/"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionCookiePolicy":
        return cls(
            name=settings.cookie_name,
            max_age=settings.session_max_age,
            secure=settings.cookie_cross_site,
            samesite="none" if settings.cookie_cross_site else "strict",
        )

    def _attributes(self) -> dict:
        return {"path": self.path, "secure": self.secure, "httponly": True, "samesite": self.samesite}

    def attach(self, response: Response, token: str) -> None:
        response.set_cookie(self.name, token, max_age=self.max_age, **self._attributes())

    def detach(self, response: Response) -> None:
        response.delete_cookie(self.name, **self._attributes())

    def read(self, request: Request) -> Optional[str]:
        return request.cookies.get(self.name)
