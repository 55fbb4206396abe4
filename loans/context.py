from dataclasses import dataclass

from .models import InstallmentSource


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, passed explicitly into every mutating service call."""

    actor: str
    source: str = InstallmentSource.MANUAL

    @classmethod
    def from_request(cls, request, source: str = InstallmentSource.MANUAL) -> "RequestContext":
        user = getattr(request, "user", None)
        actor = user.get_username() if user is not None and user.is_authenticated else "anonymous"
        return cls(actor=actor, source=source)
