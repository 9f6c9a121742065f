"""Factory Boy definition for :class:`authority.models.signing_key.SigningKey`."""

from __future__ import annotations

from datetime import UTC, datetime

from authority.models.signing_key import SigningKey

import factory
from tests.factories import BaseFactory


class SigningKeyFactory(BaseFactory):
    """Build retired keys by default; pass ``active=True`` for the current one."""

    class Meta:
        model = SigningKey

    secret = factory.Faker("pystr", min_chars=48, max_chars=48)
    active = False
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    retired_at = factory.LazyAttribute(lambda o: None if o.active else datetime.now(UTC))
