"""Column mixins shared by the credential models."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import Mapped, mapped_column


class PKMixin:
    """Integer surrogate key ``id``.

    Signing key ids double as the ``kid`` token header, so they must only
    ever grow: rows are never updated to a new id.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class CreatedAtMixin:
    """Timezone-aware ``created_at``.

    Services pass their own clock value so key age and grace windows are
    computed against the same time source that signs tokens. The server
    default only covers rows inserted outside the services (migrations, SQL).
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class ReprMixin:
    """``<ClassName id=... attr=...>`` built from a whitelist of attributes.

    Only names listed in ``__repr_attrs__`` are rendered, which keeps secret
    material and password hashes out of tracebacks and debug logs.
    """

    __repr_attrs__: ClassVar[tuple[str, ...]] = ()

    def __repr__(self) -> str:
        fields = [f"id={getattr(self, 'id', None)}"]
        fields.extend(f"{name}={getattr(self, name, None)!r}" for name in self.__repr_attrs__)
        return f"<{self.__class__.__name__} {' '.join(fields)}>"
