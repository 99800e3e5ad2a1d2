# Import all the models, so that Base has them before being imported by Alembic
from app.db.base_class import Base  # noqa
from app.models.user import User  # noqa
from app.models.chat import Chat, ChatParticipant  # noqa
from app.models.message import Message  # noqa

# Make sure all models are imported before initializing Base.metadata
# This is required for Alembic to detect all models
