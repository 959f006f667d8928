from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UserFlags(Base):
    """Per-user values remembered between rolls."""
    __tablename__ = 'user_flags'

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    last_roll_prompt_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<UserFlags(user_id='{self.user_id}', last_roll_prompt_value={self.last_roll_prompt_value})>"
