"""Create marketplace tables

Revision ID: 3b1e7c2a9d40
Revises: 
Create Date: 2026-10-18 09:12:44.310522

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3b1e7c2a9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, catalogue, cart, purchase, chat, moderation and audit tables."""
    from ecofinds.database import Base
    from ecofinds import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind)


def downgrade() -> None:
    from ecofinds.database import Base
    from ecofinds import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind)
