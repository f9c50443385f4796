"""StockX account ORM model."""

import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.shared.models import TimestampMixin


class StockxAccount(TimestampMixin, Base):
    """Stored OAuth tokens for a user's connected StockX account.

    Attributes:
        user_id: Owner of the account (primary key).
        access_token: Current bearer token.
        refresh_token: Token used to obtain a new access token.
        token_type: Usually "Bearer".
        expires_at: When access_token stops being accepted.
        scope: Granted OAuth scopes.
    """

    __tablename__ = "stockx_accounts"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_type: Mapped[str] = mapped_column(String(20), default="Bearer", server_default="Bearer")
    expires_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True))
    scope: Mapped[str | None] = mapped_column(String(255), nullable=True)
