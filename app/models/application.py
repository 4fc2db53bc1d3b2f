from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from datetime import datetime
from app.database import Base

# Known statuses. The column accepts any string.
APPLICATION_STATUSES = (
    "Not Started",
    "In Progress",
    "Completed",
    "Rejected",
    "Interview Scheduled",
)
DEFAULT_STATUS = "Not Started"


class Application(Base):
    """
    Application tracking model
    One row per application a user is preparing; deadline drives reminders
    """
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    type = Column(String)
    status = Column(String, nullable=False, default=DEFAULT_STATUS, index=True)
    deadline = Column(DateTime, index=True)  # Naive UTC; index for recovery scan
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "type": self.type,
            "status": self.status,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
